import asyncio
import threading
import time

import pytest

from reflex_datatable.engine import DataGridEngine
from reflex_datatable.formatting import StatusBadge
from reflex_datatable.models import ColumnConfigError, ColumnDescriptor, FilterConfig, FilterType, SortSpec
from reflex_datatable.sync import FilterSyncBridge


class Recorder:
    def __init__(self):
        self.events = []

    def hook(self, name):
        return lambda payload: self.events.append((name, payload))

    def names(self):
        return [name for name, _ in self.events]

    def last(self, name):
        return [payload for n, payload in self.events if n == name][-1]


@pytest.fixture()
def recorder():
    return Recorder()


HOOKS = {
    "sort": "on_sort_change",
    "filter": "on_filter_change",
    "page": "on_page_change",
    "selection": "on_selection_change",
    "row_click": "on_row_click",
}


def _engine(columns, data, recorder, **kwargs):
    for name, kwarg in HOOKS.items():
        kwargs.setdefault(kwarg, recorder.hook(name))
    return DataGridEngine(columns, data, **kwargs)


ROW_COLUMNS = [ColumnDescriptor(field="name"), ColumnDescriptor(field="value", data_type="number")]


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def test_duplicate_columns_fail_fast():
    with pytest.raises(ColumnConfigError):
        DataGridEngine([ColumnDescriptor(field="a"), ColumnDescriptor(field="a")])


def test_status_column_without_group_fails_fast():
    with pytest.raises(ColumnConfigError, match="status_group"):
        DataGridEngine([ColumnDescriptor(field="status", data_type="status")])


def test_initial_page_and_size(make_records):
    engine = DataGridEngine(ROW_COLUMNS, make_records(60), pagination={"page": 3, "pageSize": 10})
    assert engine.pagination.model() == {"page": 3, "pageSize": 10}
    assert [r["id"] for r in engine.visible_records] == list(range(21, 31))


def test_empty_table_renders_message():
    view = DataGridEngine(ROW_COLUMNS, []).render()
    assert view.empty
    assert view.empty_message == "No data to display"
    assert view.pagination.label == "0-0 of 0"
    assert view.rows == []


# ---------------------------------------------------------------------------
# Client-paged mode
# ---------------------------------------------------------------------------

def test_client_mode_slices_pages(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, pagination={"pageSize": 10})
    assert len(engine.visible_records) == 10
    engine.change_page(3)
    assert [r["id"] for r in engine.visible_records] == list(range(21, 31))
    assert recorder.events == [("page", {"page": 3, "pageSize": 10})]
    assert engine.render().pagination.label == "21-30 of 30"


def test_page_change_to_same_page_emits_nothing(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(5), recorder)
    engine.change_page(4)
    assert recorder.events == []


def test_sort_reorders_and_keeps_page(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, pagination={"pageSize": 10})
    engine.change_page(2)
    engine.sort("name")
    engine.sort("name")
    assert engine.pagination.page == 2
    assert recorder.last("sort") == [{"field": "name", "direction": "desc"}]
    assert engine.visible_records[0]["id"] == 20


def test_sort_ignores_unknown_and_unsortable_fields(claim_columns, claims, recorder):
    engine = _engine(claim_columns, claims, recorder)
    assert engine.sort("actions") is None
    assert engine.sort("nope") is None
    assert recorder.events == []


def test_filter_resets_page_and_emits(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, pagination={"pageSize": 10})
    engine.change_page(3)
    recorder.events.clear()
    assert engine.filter("value", 0) is True
    assert recorder.names() == ["filter", "page"]
    assert recorder.last("filter") == [{"field": "value", "operator": "equals", "value": 0}]
    assert recorder.last("page") == {"page": 1, "pageSize": 10}
    assert [r["id"] for r in engine.visible_records] == [7, 14, 21, 28]
    assert engine.total_items == 4


def test_filter_on_first_page_does_not_emit_page(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder)
    engine.filter("name", "row 01")
    assert recorder.names() == ["filter"]
    assert engine.total_items == 10


def test_clear_filters(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder)
    engine.filter("name", "row 00")
    assert engine.total_items == 9
    assert engine.clear_filters() is True
    assert engine.total_items == 30
    assert recorder.last("filter") == []
    assert engine.clear_filters() is False


def test_multi_select_options_accumulate(make_records, recorder):
    configs = [FilterConfig(id="value", filter_type=FilterType.multi_select)]
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, filter_configs=configs)
    assert engine.toggle_filter_option("value", 1, True) is True
    assert engine.toggle_filter_option("value", 2, True) is True
    assert recorder.last("filter") == [{"field": "value", "operator": "in", "value": [1, 2]}]
    assert engine.total_items == 10
    engine.toggle_filter_option("value", 1, False)
    assert engine.total_items == 5


def test_staged_filters_apply_once(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, filter_mode="staged")
    assert engine.filter("name", "row 01") is False
    assert engine.total_items == 30
    assert engine.apply_filters() is True
    assert engine.total_items == 10
    assert recorder.names() == ["filter"]


def test_page_size_change(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(60), recorder, pagination={"pageSize": 10})
    engine.change_page(4)
    assert engine.change_page_size(50) == {"page": 1, "pageSize": 50}
    assert len(engine.visible_records) == 50
    assert recorder.last("page") == {"page": 1, "pageSize": 50}


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def test_selection_is_ignored_when_not_selectable(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(3), recorder)
    assert engine.toggle_row(engine.visible_records[0]) == []
    assert engine.toggle_all(True) == []
    assert recorder.events == []


def test_select_all_selects_current_page_only(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, selectable=True, pagination={"pageSize": 10})
    selected = engine.toggle_all(True)
    assert [r["id"] for r in selected] == list(range(1, 11))
    view = engine.render()
    assert view.selection.all_selected
    assert all(row.selected for row in view.rows)


def test_selection_clears_on_page_sort_and_filter(make_records, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, selectable=True, pagination={"pageSize": 10})
    for intent in (lambda: engine.change_page(2), lambda: engine.sort("value"), lambda: engine.filter("name", "row")):
        engine.toggle_row(engine.visible_records[0])
        assert engine.selection.count == 1
        intent()
        assert engine.selection.count == 0
        assert recorder.last("selection") == []


def test_toggling_a_record_that_is_not_visible_is_ignored(make_records):
    engine = DataGridEngine(ROW_COLUMNS, make_records(30), selectable=True, pagination={"pageSize": 10})
    assert engine.toggle_row({"id": 25}) == []


def test_tri_state(make_records):
    engine = DataGridEngine(ROW_COLUMNS, make_records(3), selectable=True)
    engine.toggle_row_by_key(2)
    state = engine.render().selection
    assert state.indeterminate and not state.all_selected
    assert state.selected_keys == [2]


# ---------------------------------------------------------------------------
# Server-paged mode
# ---------------------------------------------------------------------------

def test_server_mode_passes_data_through(recorder):
    page = [{"id": i, "name": f"n{i}", "value": i} for i in range(1, 26)]
    engine = _engine(ROW_COLUMNS, page, recorder, server_side=True, total_items=240)
    assert engine.visible_records == page
    assert engine.pagination.total_pages == 10

    engine.sort("value")
    assert engine.visible_records == page
    assert recorder.last("sort") == [{"field": "value", "direction": "asc"}]

    engine.change_page(4)
    assert recorder.last("page") == {"page": 4, "pageSize": 25}
    assert engine.render().pagination.label == "76-100 of 240"


def test_server_mode_new_data_clears_selection(recorder):
    page = [{"id": 1}, {"id": 2}]
    engine = _engine(ROW_COLUMNS, page, recorder, server_side=True, total_items=2, selectable=True)
    engine.toggle_all(True)
    engine.set_data(list(page), total_items=2)
    assert engine.selection.count == 0
    assert recorder.last("selection") == []


def test_server_mode_shrinking_total_clamps_page(recorder):
    engine = _engine(ROW_COLUMNS, [{"id": 1}], recorder, server_side=True, total_items=100, pagination={"pageSize": 10})
    engine.change_page(9)
    engine.set_data([{"id": 1}], total_items=30)
    assert engine.pagination.page == 3
    assert recorder.last("page") == {"page": 3, "pageSize": 10}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def test_desktop_render(claim_columns, claims):
    engine = DataGridEngine(claim_columns, claims, initial_sort=SortSpec(field="amount", direction="desc"))
    engine.filter("status", "PAID")
    view = engine.render()
    assert view.mode == "table"
    headers = {h.field: h for h in view.headers}
    assert headers["amount"].sort_direction == "desc"
    assert headers["amount"].align == "right"
    assert headers["status"].filter_active
    assert not headers["actions"].sortable
    first = view.rows[0]
    assert first.key == 1
    assert first.cells[3] == "$1,250.75"
    assert first.cells[4] == StatusBadge(label="Paid", color="#4CAF50")


def test_unknown_status_renders_neutral_badge(claim_columns, claims):
    view = DataGridEngine(claim_columns, claims).render()
    badge = view.rows[4].cells[4]
    assert badge.label == "Weird State"
    assert not badge.known


def test_tablet_hides_actions(claim_columns, claims):
    engine = DataGridEngine(claim_columns, claims, viewport="tablet")
    view = engine.render()
    assert view.mode == "reduced_table"
    assert "actions" not in [h.field for h in view.headers]
    assert len(view.rows[0].cells) == 5


def test_mobile_render_builds_cards(claim_columns, claims):
    engine = DataGridEngine(claim_columns, claims)
    engine.set_viewport("mobile")
    view = engine.render()
    assert view.mode == "cards"
    assert view.rows == []
    card = view.cards[0]
    assert card.title == "CLM-001"
    assert [f.label for f in card.fields] == ["Patient", "Date of service", "Amount", "Status"]
    assert card.actions == ["View"]
    assert not any(h.sortable for h in view.headers)


def test_unknown_viewport_is_ignored(claim_columns, claims):
    engine = DataGridEngine(claim_columns, claims)
    engine.set_viewport("watch")
    assert engine.viewport == "desktop"


def test_row_click(claim_columns, claims, recorder):
    engine = _engine(claim_columns, claims, recorder)
    assert engine.click_row_by_key(3) is claims[2]
    assert recorder.events == [("row_click", claims[2])]
    assert engine.click_row_by_key(99) is None


# ---------------------------------------------------------------------------
# Debounce and sync
# ---------------------------------------------------------------------------

def test_debounced_filter_applies_last_value(make_records, scheduler, recorder):
    engine = _engine(ROW_COLUMNS, make_records(30), recorder, scheduler=scheduler)
    engine.debounced_filter("name", "r")
    engine.debounced_filter("name", "row 00")
    assert engine.total_items == 30
    scheduler.run_pending()
    assert engine.total_items == 9
    assert recorder.names() == ["filter"]


def test_close_cancels_pending_filters(make_records, scheduler):
    with DataGridEngine(ROW_COLUMNS, make_records(30), scheduler=scheduler) as engine:
        engine.debounced_filter("name", "row 00")
    scheduler.run_pending()
    assert engine.total_items == 30
    engine.debounced_filter("name", "row 00")
    assert scheduler.live == []


def _filter_threads(make_records):
    threads = []
    engine = DataGridEngine(
        ROW_COLUMNS,
        make_records(30),
        debounce_ms=5,
        on_filter_change=lambda params: threads.append(threading.current_thread().name),
    )
    return engine, threads


def test_debounced_filter_without_loop_applies_on_owner_thread(make_records):
    engine, threads = _filter_threads(make_records)
    engine.debounced_filter("name", "row 00")
    deadline = time.monotonic() + 2
    while engine.debouncer.ready_count == 0 and time.monotonic() < deadline:
        time.sleep(0.005)
    assert threads == []
    assert engine.total_items == 30

    assert engine.flush_debounced() == 1
    assert threads == [threading.current_thread().name]
    assert engine.total_items == 9


def test_debounced_filter_inside_loop_applies_on_loop_thread(make_records):
    async def main():
        engine, threads = _filter_threads(make_records)
        engine.debounced_filter("name", "row 00")
        await asyncio.sleep(0.05)
        return engine, threads

    engine, threads = asyncio.run(main())
    assert threads == [threading.current_thread().name]
    assert engine.total_items == 9


def test_view_key_restores_and_mirrors_filters(make_records):
    bridge = FilterSyncBridge(external={"value": "3"})
    engine = DataGridEngine(ROW_COLUMNS, make_records(30), view_key="rows", bridge=bridge)
    assert engine.filters.values() == {"value": 3}
    assert engine.total_items == 4

    engine.filter("name", "row 01")
    assert bridge.external == {"value": "3", "name": "row 01"}
    engine.clear_filter("value")
    assert bridge.external == {"name": "row 01"}

    engine.close()
    assert bridge.registered_keys() == []
