from reflex_datatable.models import SortSpec
from reflex_datatable.sorting import SortController


def test_first_toggle_sorts_ascending():
    sorter = SortController()
    spec = sorter.toggle("amount")
    assert spec == SortSpec(field="amount", direction="asc")
    assert sorter.sort_model() == [{"field": "amount", "direction": "asc"}]


def test_toggle_same_field_flips_direction():
    sorter = SortController()
    sorter.toggle("amount")
    assert sorter.toggle("amount").direction == "desc"
    assert sorter.toggle("amount").direction == "asc"


def test_toggle_other_field_starts_ascending():
    sorter = SortController(SortSpec(field="amount", direction="desc"))
    spec = sorter.toggle("patient")
    assert spec == SortSpec(field="patient", direction="asc")
    assert sorter.direction_for("amount") is None
    assert sorter.direction_for("patient") == "asc"


def test_on_change_receives_sort_model():
    seen = []
    sorter = SortController(on_change=seen.append)
    sorter.toggle("patient")
    sorter.toggle("patient")
    assert seen == [
        [{"field": "patient", "direction": "asc"}],
        [{"field": "patient", "direction": "desc"}],
    ]


def test_reset_clears_sort():
    sorter = SortController(SortSpec(field="amount"))
    sorter.reset()
    assert sorter.sort_spec is None
    assert sorter.sort_model() == []
