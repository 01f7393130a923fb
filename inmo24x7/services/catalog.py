from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import logging

from inmo24x7.config import get_settings
from inmo24x7.models.domain import OPERATIONS, Property
from inmo24x7.utils.catalog_loader import load_csv_rows

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^\d]")


def parse_operacion(raw: Optional[str]) -> Optional[str]:
    normalized = (raw or "").strip().lower()
    return normalized if normalized in OPERATIONS else None


def parse_precio(raw: Optional[str], currency: Optional[str], usd_rate: float) -> Optional[float]:
    digits = _NON_DIGITS.sub("", str(raw or ""))
    if not digits:
        return None
    precio = float(digits)
    if precio <= 0:
        return None
    # Everything is compared in ARS; USD listings are converted at load time
    if (currency or "USD").strip().upper() == "USD":
        precio *= usd_rate
    return precio


def build_property(raw: Dict[str, str], index: int, usd_rate: float) -> Optional[Property]:
    operacion = parse_operacion(raw.get("Operacion"))
    if not operacion:
        return None
    zona = (raw.get("Zona3") or raw.get("Zona2") or raw.get("Zona") or "").strip()
    if not zona:
        return None
    precio = parse_precio(raw.get("Precio"), raw.get("Currency"), usd_rate)
    if precio is None:
        return None
    titulo = (raw.get("generatedTitle") or raw.get("Title") or "Sin título").strip()
    return Property(
        id=f"ZP-{index:06d}",
        operacion=operacion,
        zona=zona,
        precio=precio,
        titulo=titulo or "Sin título",
        link=(raw.get("url") or "").strip() or None,
        disponible=True,
    )


def parse_catalog(rows: Iterable[Dict[str, str]], usd_rate: float) -> List[Property]:
    properties: List[Property] = []
    dropped = 0
    for index, raw in enumerate(rows):
        prop = build_property(raw, index, usd_rate)
        if prop is None:
            dropped += 1
            continue
        properties.append(prop)
    if dropped:
        logger.info("catalog.dropped_rows count=%d", dropped)
    return properties


def load_catalog(path: Path, usd_rate: float) -> List[Property]:
    return parse_catalog(load_csv_rows(path), usd_rate)


@lru_cache(maxsize=1)
def get_catalog() -> Tuple[Property, ...]:
    settings = get_settings()
    path = settings.catalog_csv_path
    if not path.exists():
        logger.warning("catalog.missing path=%s", path)
        return ()
    properties = tuple(load_catalog(path, settings.usd_to_ars_rate))
    logger.info("catalog.loaded count=%d path=%s", len(properties), path)
    return properties


def clear_catalog_cache() -> None:
    get_catalog.cache_clear()


def get_properties_count() -> int:
    return len(get_catalog())
