import pytest

from reflex_datatable.filtering import FilterModel
from reflex_datatable.models import FilterConfig, FilterOption, FilterType
from reflex_datatable.sync import (
    FilterSyncBridge,
    get_filter_bridge,
    parse_value,
    reset_filter_bridge,
    serialize_value,
)

CONFIGS = [
    FilterConfig(id="q", field="patient"),
    FilterConfig(
        id="priority",
        filter_type=FilterType.select,
        options=[FilterOption(value=1, label="High"), FilterOption(value=2, label="Low")],
    ),
    FilterConfig(id="tags", filter_type=FilterType.multi_select),
    FilterConfig(id="from", field="service_date", filter_type=FilterType.date),
    FilterConfig(id="period", field="service_date", filter_type=FilterType.date_range),
    FilterConfig(id="amount", filter_type=FilterType.number, min=0, max=10_000),
    FilterConfig(id="units", filter_type=FilterType.number),
    FilterConfig(id="active", filter_type=FilterType.boolean),
    FilterConfig(id="prio", filter_type=FilterType.select),
    FilterConfig(id="ids", filter_type=FilterType.multi_select),
]
BY_ID = {c.id: c for c in CONFIGS}


def _by_id(entries):
    return sorted(entries, key=lambda e: e.filter_id)


@pytest.mark.parametrize(
    "filter_id, value, text",
    [
        ("q", "a..b", "a..b"),
        ("priority", 2, "2"),
        ("tags", ["x,y", "z%"], "x%2Cy,z%25"),
        ("from", "2024-03-01", "2024-03-01"),
        ("period", {"start": "2024-01-01", "end": None}, "2024-01-01.."),
        ("amount", {"min": -5, "max": 2.5}, "-5..2.5"),
        ("units", 3, "3"),
        ("active", False, "false"),
        ("prio", 5, "5"),
        ("prio", "5", "~5"),
        ("prio", "~x", "~~x"),
        ("ids", [1, 2.5, True, "3", "a"], "1,2.5,true,~3,a"),
    ],
)
def test_serialize_and_parse(filter_id, value, text):
    config = BY_ID[filter_id]
    assert serialize_value(config, value) == text
    assert parse_value(config, text) == value


def test_parse_rejects_malformed_text():
    with pytest.raises(ValueError):
        parse_value(BY_ID["period"], "2024-01-01")
    with pytest.raises(ValueError):
        parse_value(BY_ID["units"], "many")
    with pytest.raises(ValueError):
        parse_value(BY_ID["active"], "maybe")


def test_filters_survive_a_trip_through_the_url():
    source = FilterModel(CONFIGS)
    source.set("q", None, "ada")
    source.set("priority", None, 1)
    source.set("tags", None, ["red", "blue green"])
    source.set("period", None, {"start": "2024-01-01", "end": "2024-02-01"})
    source.set("amount", None, {"min": 10, "max": None})
    source.set("active", None, True)
    source.set("prio", None, 5)
    source.set("ids", None, [1, 2, "07"])

    writer = FilterSyncBridge()
    writer.register("claims", CONFIGS)
    writer.sync_view("claims", source.values())
    query = writer.query_string()

    reader = FilterSyncBridge()
    reader.register("claims", CONFIGS)
    reader.load_query_string("?" + query)
    restored = FilterModel(CONFIGS, initial_values=reader.view_values("claims"))

    assert restored.values() == source.values()
    assert _by_id(restored.entries) == _by_id(source.entries)


def test_load_ignores_unknown_and_malformed_keys():
    bridge = FilterSyncBridge(external={"q": "ada", "utm_source": "mail", "units": "many"})
    bridge.register("claims", CONFIGS)
    assert bridge.load() == {"q": "ada"}
    assert bridge.global_filters() == {"q": "ada"}


def test_set_global_mirrors_external():
    bridge = FilterSyncBridge()
    bridge.register("claims", CONFIGS)
    bridge.set_global("units", "7")
    assert bridge.global_filters() == {"units": 7}
    assert bridge.external == {"units": "7"}
    bridge.set_global("units", "")
    assert bridge.external == {}


def test_clear_all_global_keeps_foreign_params():
    bridge = FilterSyncBridge(external={"page": "3"})
    bridge.register("claims", CONFIGS)
    bridge.set_global("q", "x")
    bridge.clear_all_global()
    assert bridge.global_filters() == {}
    assert bridge.external == {"page": "3"}


def test_disabled_sync_never_touches_external():
    bridge = FilterSyncBridge(sync_enabled=False, external={"q": "ada"})
    bridge.register("claims", CONFIGS)
    assert bridge.load() == {}
    bridge.set_global("q", "bob")
    assert bridge.external == {"q": "ada"}
    assert bridge.global_filters() == {"q": "bob"}


def test_view_values_are_scoped_to_registered_configs():
    bridge = FilterSyncBridge()
    bridge.register("claims", [BY_ID["q"]])
    bridge.register("payments", [BY_ID["units"]])
    bridge.set_global("q", "ada")
    bridge.set_global("units", 4)
    assert bridge.view_values("claims") == {"q": "ada"}
    assert bridge.view_values("payments") == {"units": 4}
    bridge.unregister("payments")
    assert bridge.registered_keys() == ["claims"]


def test_sync_view_clears_removed_filters():
    bridge = FilterSyncBridge()
    bridge.register("claims", CONFIGS)
    bridge.sync_view("claims", {"q": "ada", "units": 2})
    bridge.sync_view("claims", {"units": 2})
    assert bridge.global_filters() == {"units": 2}
    assert "q" not in bridge.external


def test_singleton():
    first = get_filter_bridge()
    assert get_filter_bridge() is first
    reset_filter_bridge()
    assert get_filter_bridge() is not first
