import pytest

from reflex_datatable.filtering import (
    FilterModel,
    coerce_number,
    default_operator,
    filter_configs_from_columns,
    is_empty_value,
    merge_date_pairs,
    normalize_value,
)
from reflex_datatable.models import (
    ColumnConfigError,
    FilterConfig,
    FilterOperator,
    FilterOption,
    FilterType,
)


@pytest.fixture()
def configs():
    return [
        FilterConfig(id="q", label="Search", field="patient"),
        FilterConfig(
            id="status",
            filter_type=FilterType.select,
            options=[FilterOption(value="PAID", label="Paid")],
        ),
        FilterConfig(id="tags", filter_type=FilterType.multi_select),
        FilterConfig(id="service_date", filter_type=FilterType.date_range),
        FilterConfig(id="amount", filter_type=FilterType.number, min=0, max=5000),
        FilterConfig(id="active", filter_type=FilterType.boolean),
    ]


def test_default_operators(configs):
    by_id = {c.id: c for c in configs}
    assert default_operator(by_id["q"]) == FilterOperator.contains
    assert default_operator(by_id["status"]) == FilterOperator.equals
    assert default_operator(by_id["tags"]) == FilterOperator.in_
    assert default_operator(by_id["service_date"]) == FilterOperator.between
    assert default_operator(by_id["amount"]) == FilterOperator.between
    assert default_operator(FilterConfig(id="n", filter_type=FilterType.number)) == FilterOperator.equals
    assert default_operator(FilterConfig(id="d", filter_type=FilterType.date)) == FilterOperator.gte


PAIRED = [
    FilterConfig(id="from", label="From", field="service_date", filter_type=FilterType.date),
    FilterConfig(id="to", label="To", field="service_date", filter_type=FilterType.date, paired_with="from"),
]


def test_paired_date_controls_fold_into_one_range_control():
    merged, ends = merge_date_pairs(PAIRED)
    assert ends == {"to": "from"}
    assert [c.id for c in merged] == ["from"]
    assert merged[0].filter_type == FilterType.date_range
    assert default_operator(merged[0]) == FilterOperator.between


def test_paired_dates_make_a_single_between_entry():
    seen = []
    model = FilterModel(PAIRED, on_change=seen.append)
    model.set("from", None, "2024-01-01")
    model.set("to", None, "2024-02-01")
    assert model.filter_params() == [
        {
            "field": "service_date",
            "operator": "between",
            "value": {"start": "2024-01-01", "end": "2024-02-01"},
        }
    ]
    assert seen[0] == [
        {"field": "service_date", "operator": "between", "value": {"start": "2024-01-01", "end": None}}
    ]


def test_clearing_one_side_of_a_pair_keeps_the_other():
    model = FilterModel(PAIRED, initial_values={"from": "2024-01-01", "to": "2024-02-01"})
    assert model.values() == {"from": {"start": "2024-01-01", "end": "2024-02-01"}}
    assert model.clear("to") is True
    assert model.values() == {"from": {"start": "2024-01-01", "end": None}}
    assert model.set("from", None, "") is True
    assert model.entries == []


def test_pair_must_end_on_a_date_filter():
    with pytest.raises(ColumnConfigError, match="cannot end a date pair"):
        FilterModel([PAIRED[0], FilterConfig(id="to", paired_with="from")])


@pytest.mark.parametrize("value", [None, "", [], {}, {"start": None, "end": ""}])
def test_empty_values(value):
    assert is_empty_value(value)


def test_zero_and_false_are_not_empty():
    assert not is_empty_value(0)
    assert not is_empty_value(False)


def test_coerce_number():
    assert coerce_number("12") == 12
    assert coerce_number(" 2.5 ") == 2.5
    assert coerce_number("abc") is None
    assert coerce_number(True) is None


def test_normalize_values(configs):
    by_id = {c.id: c for c in configs}
    assert normalize_value(by_id["service_date"], {"startDate": "2024-01-01T10:00:00"}) == {
        "start": "2024-01-01",
        "end": None,
    }
    assert normalize_value(by_id["amount"], ("10", None)) == {"min": 10, "max": None}
    assert normalize_value(by_id["tags"], "a") == ["a"]
    assert normalize_value(by_id["active"], "false") is False
    with pytest.raises(ValueError):
        normalize_value(by_id["amount"], {"min": "lots"})
    with pytest.raises(ValueError):
        normalize_value(by_id["service_date"], {"start": 20240101})


def test_live_set_reports_filter_params(configs):
    seen = []
    model = FilterModel(configs, on_change=seen.append)
    assert model.set("q", None, "ada") is True
    assert seen == [[{"field": "patient", "operator": "contains", "value": "ada"}]]
    assert model.is_active("patient")


def test_setting_same_value_is_not_a_change(configs):
    model = FilterModel(configs)
    model.set("status", None, "PAID")
    assert model.set("status", None, "PAID") is False


def test_empty_value_removes_entry(configs):
    model = FilterModel(configs)
    model.set("q", None, "ada")
    assert model.set("q", None, "") is True
    assert model.entries == []
    assert len(model) == 0


def test_unknown_id_and_bad_value_are_ignored(configs):
    model = FilterModel(configs)
    assert model.set("nope", None, "x") is False
    assert model.set("amount", None, {"min": "lots"}) is False
    assert model.set("q", "bogus-operator", "ada") is False
    assert model.entries == []


def test_explicit_operator_overrides_default(configs):
    model = FilterModel(configs)
    model.set("q", "equals", "Ada")
    assert model.filter_params() == [{"field": "patient", "operator": "equals", "value": "Ada"}]


def test_staged_mode_applies_on_demand(configs):
    seen = []
    model = FilterModel(configs, mode="staged", on_change=seen.append)
    assert model.set("q", None, "ada") is False
    assert model.set("status", None, "PAID") is False
    assert model.is_dirty
    assert model.entries == []
    assert model.draft_values() == {"q": "ada", "status": "PAID"}
    assert model.apply() is True
    assert not model.is_dirty
    assert len(seen) == 1
    assert model.values() == {"q": "ada", "status": "PAID"}


def test_clear_all_and_reset_to_initial(configs):
    model = FilterModel(configs, initial_values={"status": "PAID"})
    assert model.values() == {"status": "PAID"}
    model.set("q", None, "x")
    assert model.clear_all() is True
    assert model.values() == {}
    assert model.reset() is True
    assert model.values() == {"status": "PAID"}


def test_replace_sets_whole_model(configs):
    model = FilterModel(configs)
    model.set("q", None, "x")
    model.replace({"status": "PAID", "unknown": 1, "tags": []})
    assert model.values() == {"status": "PAID"}


def test_unknown_mode_is_a_config_error(configs):
    with pytest.raises(ColumnConfigError):
        FilterModel(configs, mode="eager")


def test_configs_from_columns(claim_columns):
    configs = {c.id: c for c in filter_configs_from_columns(claim_columns)}
    assert set(configs) == {"claim_number", "patient", "service_date", "amount", "status"}
    assert configs["amount"].filter_type == FilterType.number
    assert configs["service_date"].filter_type == FilterType.date
    assert configs["status"].filter_type == FilterType.select
    assert FilterOption(value="PAID", label="Paid") in configs["status"].options


def test_toggle_option_builds_a_multi_select_list(configs):
    seen = []
    model = FilterModel(configs, on_change=seen.append)
    assert model.toggle_option("tags", "red", True) is True
    assert model.toggle_option("tags", "blue", True) is True
    assert model.toggle_option("tags", "red", True) is False
    assert model.values() == {"tags": ["red", "blue"]}
    assert model.toggle_option("tags", "red", False) is True
    assert model.toggle_option("tags", "blue", False) is True
    assert model.entries == []
    assert len(seen) == 4


def test_toggle_option_only_applies_to_multi_select(configs):
    model = FilterModel(configs)
    assert model.toggle_option("status", "PAID", True) is False
    assert model.entries == []
