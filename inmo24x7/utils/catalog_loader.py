from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List


def load_csv_rows(file_path: Path) -> List[Dict[str, str]]:
    # DictReader already skips blank lines; short rows get None for missing columns
    with file_path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))
