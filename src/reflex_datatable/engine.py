"""The data grid engine: sort + filter + pagination + selection + layout + formatting.

A host (a Reflex state, a test, any other view layer) hands the engine its
columns and records and forwards user intents to it.  The engine either
answers them locally (client-paged mode: the whole record set is in
memory and is filtered, sorted and sliced here) or turns them into
outbound callbacks the host uses to refetch (server-paged mode: ``data``
is exactly the current page and ``total_items`` comes from the server).

Outbound callbacks:

* ``on_sort_change(list[dict])`` -- ``[{"field", "direction"}]``
* ``on_filter_change(list[dict])`` -- ``[{"field", "operator", "value"}]``
* ``on_page_change(dict)`` -- ``{"page", "pageSize"}``
* ``on_selection_change(list[record])``
* ``on_row_click(record)``

The engine keeps no memory of which request produced which data; a host
that fires several fetches must discard stale responses itself.
"""

import logging
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from reflex_datatable.config import (
    DEBOUNCE_DELAY_MS,
    DEFAULT_PAGE_SIZE,
    EMPTY_MESSAGE,
    PAGE_SIZE_OPTIONS,
)
from reflex_datatable.debouncing import FilterDebouncer, Scheduler
from reflex_datatable.filtering import FilterMode, FilterModel, filter_configs_from_columns
from reflex_datatable.formatting import cell_alignment, format_cell
from reflex_datatable.models import (
    ColumnDescriptor,
    FilterConfig,
    FilterOperator,
    Record,
    SortSpec,
    Viewport,
    validate_columns,
)
from reflex_datatable.pagination import PaginationController
from reflex_datatable.query import query_records
from reflex_datatable.responsive import Layout, LayoutMode, choose_layout
from reflex_datatable.selection import SelectionSet
from reflex_datatable.sorting import SortController
from reflex_datatable.sync import FilterSyncBridge, get_filter_bridge

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Render-ready structure
# ---------------------------------------------------------------------------

class HeaderCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    label: str
    align: str = "left"
    width: int | None = None
    sortable: bool = False
    sort_direction: str | None = None
    filterable: bool = False
    filter_active: bool = False


class RowView(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Any
    record: Any
    cells: list[Any]
    selected: bool = False


class CardField(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str
    label: str
    value: Any


class CardView(BaseModel):
    """One record rendered as a stacked card (mobile layout)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: Any
    record: Any
    title: Any
    fields: list[CardField]
    actions: Any = None
    selected: bool = False


class SelectionState(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    enabled: bool
    count: int
    all_selected: bool
    indeterminate: bool
    selected_keys: list[Any]


class PaginationMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    page_size: int
    total_items: int
    total_pages: int
    start: int
    end: int
    label: str
    page_size_options: list[int]


class GridView(BaseModel):
    """Everything a presentation layer needs to draw the grid once."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    mode: LayoutMode
    viewport: Viewport
    headers: list[HeaderCell]
    rows: list[RowView]
    cards: list[CardView]
    selection: SelectionState
    pagination: PaginationMeta
    sort_model: list[dict[str, Any]]
    filter_params: list[dict[str, Any]]
    loading: bool
    empty: bool
    empty_message: str


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class DataGridEngine:
    """Composable, render-ready table state.

    Args:
        columns: Column descriptors; validated at construction.
        data: Records.  The full set in client-paged mode, the current
            page in server-paged mode.
        pagination: Optional ``{"page", "pageSize"}`` starting point.
        total_items: Server-side total (server-paged mode only).
        loading: Initial loading flag.
        selectable: Whether rows can be selected.
        server_side: Server-paged mode; see module docstring.
        filter_configs: Filter controls; derived from the filterable
            columns when omitted.
        filter_mode: ``"live"`` or ``"staged"``.
        initial_sort: Optional starting sort.
        key: Record identity field (or a callable).
        viewport: Initial viewport classification.
        page_size_options: Allowed page sizes.
        view_key: When given, the engine registers its filter configs with
            the sync bridge under this key, rehydrates filters from it and
            mirrors every filter change back into it.
        bridge: Sync bridge to use; defaults to the process-wide one.
        debounce_ms: Delay for :meth:`debounced_filter`.
        scheduler: Scheduler for the debouncer (tests).

    Raises:
        ColumnConfigError: On duplicate fields, ``status`` columns without
            a ``status_group``, bad filter configs, ...
    """

    def __init__(
        self,
        columns: Sequence[ColumnDescriptor],
        data: Sequence[Record] = (),
        *,
        pagination: Mapping[str, int] | None = None,
        total_items: int | None = None,
        loading: bool = False,
        selectable: bool = False,
        server_side: bool = False,
        filter_configs: Sequence[FilterConfig] | None = None,
        filter_mode: FilterMode = "live",
        initial_sort: SortSpec | None = None,
        key: str | Callable[[Record], Hashable] = "id",
        viewport: Viewport = "desktop",
        page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS,
        on_sort_change: Callable[[list[dict[str, Any]]], Any] | None = None,
        on_filter_change: Callable[[list[dict[str, Any]]], Any] | None = None,
        on_page_change: Callable[[dict[str, int]], Any] | None = None,
        on_selection_change: Callable[[list[Record]], Any] | None = None,
        on_row_click: Callable[[Record], Any] | None = None,
        view_key: str | None = None,
        bridge: FilterSyncBridge | None = None,
        debounce_ms: int = DEBOUNCE_DELAY_MS["search"],
        scheduler: Scheduler | None = None,
    ) -> None:
        self.columns: list[ColumnDescriptor] = validate_columns(columns)
        self._by_field = {c.field: c for c in self.columns}
        configs = (
            list(filter_configs)
            if filter_configs is not None
            else filter_configs_from_columns(self.columns)
        )

        self.server_side = server_side
        self.selectable = selectable
        self.loading = loading
        self.viewport: Viewport = viewport

        self.sorter = SortController(initial_sort)
        self.filters = FilterModel(configs, mode=filter_mode)
        pagination = pagination or {}
        self.pagination = PaginationController(
            page_size=pagination.get("pageSize", pagination.get("page_size", DEFAULT_PAGE_SIZE)),
            total_items=total_items or 0,
            page_size_options=page_size_options,
        )
        self._requested_page = int(pagination.get("page", 1))
        self.selection = SelectionSet(key)
        self.debouncer = FilterDebouncer(debounce_ms, scheduler=scheduler)

        self.on_sort_change = on_sort_change
        self.on_filter_change = on_filter_change
        self.on_page_change = on_page_change
        self.on_selection_change = on_selection_change
        self.on_row_click = on_row_click

        self._data: Sequence[Record] = data
        self._total_items = total_items
        self._visible: list[Record] | Sequence[Record] = ()
        self._closed = False

        self.view_key = view_key
        self.bridge: FilterSyncBridge | None = None
        if view_key is not None:
            self.bridge = bridge if bridge is not None else get_filter_bridge()
            self.bridge.register(view_key, self.filters.configs)
            self.bridge.load()
            self.filters.replace(self.bridge.view_values(view_key))

        self._refresh()
        if self._requested_page != 1:
            self.pagination.set_page(self._requested_page)
            self._refresh()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel pending debounced filters and release the sync-bridge slot."""
        if self._closed:
            return
        self._closed = True
        cancelled = self.debouncer.cancel_all()
        if self.bridge is not None and self.view_key is not None:
            self.bridge.unregister(self.view_key)
        logger.debug("[DataTable] engine closed (%d pending filters cancelled)", cancelled)

    def __enter__(self) -> "DataGridEngine":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Inbound props
    # ------------------------------------------------------------------

    def set_data(self, data: Sequence[Record], total_items: int | None = None) -> None:
        """Accept a new fetch result (or a new in-memory record set)."""
        self._data = data
        if total_items is not None:
            self._total_items = total_items
        self._refresh()

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    def set_viewport(self, viewport: Viewport) -> None:
        if viewport not in ("mobile", "tablet", "desktop"):
            logger.debug("[DataTable] ignoring unknown viewport %r", viewport)
            return
        self.viewport = viewport

    # ------------------------------------------------------------------
    # Derived reads
    # ------------------------------------------------------------------

    @property
    def data(self) -> Sequence[Record]:
        return self._data

    @property
    def visible_records(self) -> list[Record]:
        return list(self._visible)

    @property
    def total_items(self) -> int:
        return self.pagination.total_items

    @property
    def sort_spec(self) -> SortSpec | None:
        return self.sorter.sort_spec

    def layout(self) -> Layout:
        return choose_layout(self.viewport, self.columns)

    def record_key(self, record: Record) -> Hashable:
        return self.selection.key_of(record)

    def find_visible(self, key: Any) -> Record | None:
        for record in self._visible:
            if self.selection.key_of(record) == key:
                return record
        return None

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def sort(self, field: str) -> SortSpec | None:
        """Toggle the sort on *field*; unknown/non-sortable fields are ignored."""
        column = self._by_field.get(field)
        if column is None or not column.sortable or column.data_type == "actions":
            logger.debug("[DataTable] ignoring sort on %r", field)
            return None
        spec = self.sorter.toggle(field)
        self._emit(self.on_sort_change, self.sorter.sort_model())
        self._refresh()
        return spec

    def filter(
        self,
        filter_id: str,
        value: Any,
        operator: FilterOperator | str | None = None,
    ) -> bool:
        """Set one filter.  Empty values remove it.  Returns whether it applied."""
        changed = self.filters.set(filter_id, operator, value)
        if changed:
            self._filters_changed()
        return changed

    def toggle_filter_option(self, filter_id: str, item: Any, checked: bool) -> bool:
        """Check or uncheck one option of a multi-select filter."""
        changed = self.filters.toggle_option(filter_id, item, checked)
        if changed:
            self._filters_changed()
        return changed

    def debounced_filter(
        self,
        filter_id: str,
        value: Any,
        operator: FilterOperator | str | None = None,
    ) -> None:
        """Like :meth:`filter`, but after the debounce delay (restarted per keystroke).

        Inside a running asyncio loop the filter applies on that loop.
        Without one, call :meth:`flush_debounced` from the owning thread to
        apply filters whose delay has passed.
        """
        if self._closed:
            return
        self.debouncer.call(filter_id, self.filter, filter_id, value, operator)

    def flush_debounced(self) -> int:
        """Apply debounced filters whose delay elapsed on a timer thread."""
        if self._closed:
            return 0
        return self.debouncer.run_ready()

    def clear_filter(self, filter_id: str) -> bool:
        self.debouncer.cancel(filter_id)
        changed = self.filters.clear(filter_id)
        if changed:
            self._filters_changed()
        return changed

    def clear_filters(self) -> bool:
        self.debouncer.cancel_all()
        changed = self.filters.clear_all()
        if self.filters.mode == "staged":
            changed = self.filters.apply() or changed
        if changed:
            self._filters_changed()
        return changed

    def apply_filters(self) -> bool:
        """Apply staged filter edits (no-op in live mode)."""
        changed = self.filters.apply()
        if changed:
            self._filters_changed()
        return changed

    def reset_filters(self) -> bool:
        changed = self.filters.reset()
        if self.filters.mode == "staged":
            changed = self.filters.apply() or changed
        if changed:
            self._filters_changed()
        return changed

    def change_page(self, page: int) -> dict[str, int]:
        before = self.pagination.page
        self.pagination.set_page(page)
        if self.pagination.page != before:
            self._emit(self.on_page_change, self.pagination.model())
            self._refresh()
        return self.pagination.model()

    def change_page_size(self, page_size: int) -> dict[str, int]:
        before = self.pagination.model()
        model = self.pagination.set_page_size(page_size)
        if model != before:
            self._emit(self.on_page_change, model)
            self._refresh()
        return model

    def toggle_row(self, record: Record) -> list[Record]:
        if not self.selectable:
            return []
        if self.find_visible(self.selection.key_of(record)) is None:
            logger.debug("[DataTable] ignoring selection of a record that is not visible")
            return self.selection.selected
        selected = self.selection.toggle_row(record)
        self._emit(self.on_selection_change, selected)
        return selected

    def toggle_row_by_key(self, key: Any) -> list[Record]:
        record = self.find_visible(key)
        if record is None:
            return self.selection.selected
        return self.toggle_row(record)

    def toggle_all(self, checked: bool) -> list[Record]:
        if not self.selectable:
            return []
        selected = self.selection.toggle_all(checked)
        self._emit(self.on_selection_change, selected)
        return selected

    def click_row(self, record: Record) -> None:
        self._emit(self.on_row_click, record)

    def click_row_by_key(self, key: Any) -> Record | None:
        record = self.find_visible(key)
        if record is not None:
            self.click_row(record)
        return record

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> GridView:
        layout = self.layout()
        filterable_fields = {c.field for c in self.filters.configs}

        headers = [
            HeaderCell(
                field=col.field,
                label=col.header,
                align=cell_alignment(col),
                width=col.width,
                sortable=(
                    layout.show_sort_affordances
                    and col.sortable
                    and col.data_type != "actions"
                ),
                sort_direction=self.sorter.direction_for(col.field),
                filterable=layout.show_filter_triggers and col.field in filterable_fields,
                filter_active=self.filters.is_active(col.field),
            )
            for col in layout.visible_columns
        ]

        rows: list[RowView] = []
        cards: list[CardView] = []
        for record in self._visible:
            key = self.selection.key_of(record)
            selected = self.selection.is_selected(record)
            if layout.mode == "cards":
                cards.append(self._card(layout, record, key, selected))
            else:
                rows.append(
                    RowView(
                        key=key,
                        record=record,
                        cells=[self._cell(record, col) for col in layout.visible_columns],
                        selected=selected,
                    )
                )

        start, end = self.pagination.display_range()
        return GridView(
            mode=layout.mode,
            viewport=self.viewport,
            headers=headers,
            rows=rows,
            cards=cards,
            selection=SelectionState(
                enabled=self.selectable,
                count=self.selection.count,
                all_selected=self.selection.is_all_selected,
                indeterminate=self.selection.is_indeterminate,
                selected_keys=self.selection.selected_keys,
            ),
            pagination=PaginationMeta(
                page=self.pagination.page,
                page_size=self.pagination.page_size,
                total_items=self.pagination.total_items,
                total_pages=self.pagination.total_pages,
                start=start,
                end=end,
                label=self.pagination.range_label(),
                page_size_options=list(self.pagination.page_size_options),
            ),
            sort_model=self.sorter.sort_model(),
            filter_params=self.filters.filter_params(),
            loading=self.loading,
            empty=len(self._visible) == 0,
            empty_message=EMPTY_MESSAGE,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _cell(record: Record, column: ColumnDescriptor) -> Any:
        value = record.get(column.field) if isinstance(record, Mapping) else getattr(record, column.field, None)
        return format_cell(value, column, record)

    def _card(self, layout: Layout, record: Record, key: Any, selected: bool) -> CardView:
        title = self._cell(record, layout.title_column) if layout.title_column else ""
        fields = [
            CardField(field=col.field, label=col.header, value=self._cell(record, col))
            for col in layout.detail_columns
        ]
        actions = self._cell(record, layout.action_column) if layout.action_column else None
        return CardView(
            key=key,
            record=record,
            title=title,
            fields=fields,
            actions=actions,
            selected=selected,
        )

    def _filters_changed(self) -> None:
        page_reset = self.pagination.reset_page()
        self._emit(self.on_filter_change, self.filters.filter_params())
        if self.bridge is not None and self.view_key is not None:
            self.bridge.sync_view(self.view_key, self.filters.values())
        if page_reset:
            self._emit(self.on_page_change, self.pagination.model())
        self._refresh()

    def _refresh(self) -> None:
        """Recompute the visible slice and rebind the selection to it."""
        if self.server_side:
            total = self._total_items if self._total_items is not None else len(self._data)
            before = self.pagination.page
            self.pagination.set_total_items(total)
            visible: Sequence[Record] = self._data
            if self.pagination.page != before:
                # A shrunken result set moved the page; the host must refetch.
                self._emit(self.on_page_change, self.pagination.model())
        else:
            matched = query_records(
                self._data,
                self.filters.entries,
                self.sorter.sort_spec,
                self.columns,
            )
            self.pagination.set_total_items(len(matched))
            offset = self.pagination.offset
            visible = matched[offset:offset + self.pagination.page_size]

        self._visible = visible
        if self.selection.bind(visible):
            self._emit(self.on_selection_change, [])

    @staticmethod
    def _emit(callback: Callable[[Any], Any] | None, payload: Any) -> None:
        if callback is not None:
            callback(payload)
