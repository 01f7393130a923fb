from inmo24x7.models.domain import Property
from inmo24x7.services.property_search import search_properties


def _prop(pid, operacion, zona, precio, disponible=True):
    return Property(id=pid, operacion=operacion, zona=zona, precio=precio, titulo=f"Prop {pid}", disponible=disponible)


CATALOG = [
    _prop("1", "venta", "Palermo", 500000),
    _prop("2", "alquiler", "Palermo", 300000),
    _prop("3", "venta", "Belgrano", 400000),
]


def test_filters_by_operation_zone_and_budget():
    results = search_properties("venta", "Palermo", 600000, catalog=CATALOG)
    assert [p.precio for p in results] == [500000]


def test_budget_below_every_match_returns_empty():
    assert search_properties("venta", "Palermo", 400000, catalog=CATALOG) == []


def test_zone_match_is_case_insensitive_substring():
    results = search_properties("venta", "  PALER ", 1_000_000, catalog=CATALOG)
    assert [p.id for p in results] == ["1"]


def test_results_sorted_by_price_and_limited():
    catalog = [
        _prop("a", "venta", "Palermo Soho", 900),
        _prop("b", "venta", "Palermo Chico", 100),
        _prop("c", "venta", "Palermo Hollywood", 500),
        _prop("d", "venta", "Palermo Viejo", 300),
    ]
    results = search_properties("venta", "palermo", 1000, catalog=catalog)
    assert [p.id for p in results] == ["b", "d", "c"]

    assert [p.id for p in search_properties("venta", "palermo", 1000, limit=1, catalog=catalog)] == ["b"]


def test_unavailable_properties_are_excluded():
    catalog = [_prop("x", "venta", "Palermo", 100, disponible=False), _prop("y", "venta", "Palermo", 200)]
    assert [p.id for p in search_properties("venta", "Palermo", 1000, catalog=catalog)] == ["y"]


def test_missing_filters_are_not_applied():
    results = search_properties(None, None, None, catalog=CATALOG)
    assert [p.id for p in results] == ["2", "3", "1"]


def test_search_does_not_mutate_catalog():
    catalog = list(CATALOG)
    search_properties("venta", "Palermo", 600000, catalog=catalog)
    assert catalog == CATALOG
