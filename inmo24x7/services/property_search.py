from __future__ import annotations

from typing import List, Optional, Sequence

import logging

from inmo24x7.logging.flight_recorder import FlightRecorder
from inmo24x7.models.domain import Property
from inmo24x7.services.catalog import get_catalog

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 3


def search_properties(
    operacion: Optional[str],
    zona: Optional[str],
    presupuesto_max: Optional[float],
    limit: int = DEFAULT_LIMIT,
    catalog: Optional[Sequence[Property]] = None,
    recorder: Optional[FlightRecorder] = None,
) -> List[Property]:
    """Available properties matching the filters, cheapest first.

    A filter passed as None is not applied. Never raises for a miss; an
    empty list is returned instead.
    """
    properties = get_catalog() if catalog is None else catalog
    norm_zona = zona.strip().lower() if zona else ""

    def is_match(prop: Property) -> bool:
        if not prop.disponible:
            return False
        if operacion is not None and prop.operacion != operacion:
            return False
        if norm_zona and norm_zona not in prop.zona.strip().lower():
            return False
        if presupuesto_max is not None and prop.precio > presupuesto_max:
            return False
        return True

    matches = sorted((prop for prop in properties if is_match(prop)), key=lambda prop: prop.precio)
    results = matches[: max(limit, 0)]
    if recorder:
        recorder.log("SEARCH", "search_results", count=len(results), operacion=operacion, zona=zona)
    return results
