"""Reflex state mixin that drives a :class:`DataGridEngine` from the browser.

Users inherit from :class:`DataTableMixin` **and** ``rx.State``, call
:meth:`DataTableMixin.set_datatable` with columns and records, and
render with :func:`reflex_datatable.components.data_table`.

Engines hold callables (custom renderers, host callbacks) and so cannot
live inside ``rx.State``.  They are kept in a module-level registry keyed
by state class and client token; only the JSON-safe render output is
copied into the ``dt_*`` vars.

Typical usage::

    from reflex_datatable import ColumnDescriptor, DataTableMixin, data_table

    class ClaimsState(DataTableMixin, rx.State):
        def load(self):
            yield from self.set_datatable(COLUMNS, fetch_claims(), selectable=True)

    def index():
        return rx.box(data_table(ClaimsState), on_mount=ClaimsState.load)
"""

import dataclasses
import json
import logging
from collections.abc import Sequence
from typing import Any

import reflex as rx

from reflex_datatable.config import EMPTY_MESSAGE, PAGE_SIZE_OPTIONS
from reflex_datatable.engine import DataGridEngine, GridView
from reflex_datatable.filtering import range_keys
from reflex_datatable.formatting import StatusBadge
from reflex_datatable.models import (
    ColumnDescriptor,
    FilterConfig,
    FilterType,
    Record,
    SortSpec,
)
from reflex_datatable.responsive import classify_viewport
from reflex_datatable.sync import FilterSyncBridge, parse_value, serialize_value

logger = logging.getLogger(__name__)

_PARSED_FILTER_TYPES = (FilterType.select, FilterType.multi_select, FilterType.boolean)


# ---------------------------------------------------------------------------
# JSON-safe view rows
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class DtCell:
    text: str = ""
    align: str = "left"
    badge: bool = False
    color: str = ""
    actions: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class DtHeader:
    field: str = ""
    label: str = ""
    align: str = "left"
    width: str = "auto"
    sortable: bool = False
    sort_direction: str = ""
    filter_active: bool = False


@dataclasses.dataclass
class DtRow:
    key: str = ""
    cells: list[DtCell] = dataclasses.field(default_factory=list)
    selected: bool = False


@dataclasses.dataclass
class DtCardField:
    label: str = ""
    cell: DtCell = dataclasses.field(default_factory=DtCell)


@dataclasses.dataclass
class DtCard:
    key: str = ""
    title: DtCell = dataclasses.field(default_factory=DtCell)
    fields: list[DtCardField] = dataclasses.field(default_factory=list)
    actions: list[str] = dataclasses.field(default_factory=list)
    selected: bool = False


@dataclasses.dataclass
class DtOption:
    value: str = ""
    label: str = ""


@dataclasses.dataclass
class DtFilter:
    id: str = ""
    label: str = ""
    type: str = "text"
    placeholder: str = ""
    options: list[DtOption] = dataclasses.field(default_factory=list)
    range: bool = False
    low_key: str = ""
    high_key: str = ""


def _action_labels(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        labels = []
        for item in value:
            if isinstance(item, dict):
                labels.append(str(item.get("label", item.get("id", ""))))
            else:
                labels.append(str(item))
        return labels
    return [str(value)]


def _to_cell(value: Any, align: str = "left", *, actions: bool = False) -> DtCell:
    if isinstance(value, StatusBadge):
        return DtCell(text=value.label, align=align, badge=True, color=value.color)
    if actions:
        return DtCell(align=align, actions=_action_labels(value))
    return DtCell(text="" if value is None else str(value), align=align)


def _option_text(config: FilterConfig, value: Any) -> str:
    """The text a control sends for one option; :func:`parse_value` reads it back."""
    if config.filter_type == FilterType.multi_select:
        return serialize_value(config, [value])
    return serialize_value(config, value)


def _filter_view(config: FilterConfig) -> DtFilter:
    keys = range_keys(config)
    return DtFilter(
        id=config.id,
        label=config.label,
        type=config.filter_type.value,
        placeholder=config.placeholder or "",
        options=[
            DtOption(value=_option_text(config, o.value), label=o.label)
            for o in (config.options or [])
        ],
        range=keys is not None,
        low_key=keys[0] if keys else "",
        high_key=keys[1] if keys else "",
    )


# ---------------------------------------------------------------------------
# Module-level engine registry
# ---------------------------------------------------------------------------

_engine_registry: dict[str, DataGridEngine] = {}
_bridge_registry: dict[str, FilterSyncBridge] = {}


def _get_engine(cache_id: str) -> DataGridEngine | None:
    return _engine_registry.get(cache_id)


def _get_bridge(client_token: str, params: dict[str, str]) -> FilterSyncBridge:
    """Return (or create) the filter bridge shared by all tables of one client."""
    if client_token not in _bridge_registry:
        _bridge_registry[client_token] = FilterSyncBridge(external=params)
    return _bridge_registry[client_token]


def _drop_engine(cache_id: str) -> None:
    engine = _engine_registry.pop(cache_id, None)
    if engine is not None:
        engine.close()


def _release_bridge(client_token: str) -> None:
    """Forget a client's bridge once no table of that client uses it."""
    bridge = _bridge_registry.get(client_token)
    if bridge is not None and not bridge.registered_keys():
        del _bridge_registry[client_token]


# ---------------------------------------------------------------------------
# DataTableMixin
# ---------------------------------------------------------------------------

class DataTableMixin(rx.State, mixin=True):
    """Reflex State mixin for paginated, filterable, selectable tables.

    This is a Reflex **mixin** (``mixin=True``): every concrete subclass
    gets its own ``dt_*`` vars, so several tables on one page do not
    interfere with each other.

    Client-paged tables (the default) keep the full record list in the
    engine and answer sort, filter and page intents locally.  For
    server-paged tables pass ``server_side=True`` and override
    :meth:`_fetch_dt_page`; it is called with the current sort, filter and
    page models whenever one of them changes.

    Override :meth:`_on_dt_row_click` / :meth:`_on_dt_action` to react to
    row clicks and action buttons.
    """

    # -- Frontend state vars --
    dt_loaded: bool = False
    dt_loading: bool = False
    dt_mode: str = "table"
    dt_headers: list[DtHeader] = []
    dt_rows: list[DtRow] = []
    dt_cards: list[DtCard] = []
    dt_filters: list[DtFilter] = []
    dt_filter_values: dict[str, str] = {}
    dt_multi_selected: list[str] = []
    dt_active_filter_count: int = 0
    dt_selectable: bool = False
    dt_selected_count: int = 0
    dt_selected_keys: list[str] = []
    dt_all_selected: bool = False
    dt_indeterminate: bool = False
    dt_page: int = 1
    dt_page_size: int = 25
    dt_total_pages: int = 1
    dt_total_items: int = 0
    dt_range_label: str = "0-0 of 0"
    dt_page_size_options: list[str] = [str(n) for n in PAGE_SIZE_OPTIONS]
    dt_empty: bool = True
    dt_empty_message: str = EMPTY_MESSAGE
    dt_active_row: str = ""
    dt_query: str = ""

    # -- Backend-only vars --
    _dt_cache_id: str = ""
    _dt_sync_url: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_datatable(
        self,
        columns: Sequence[ColumnDescriptor],
        records: Sequence[Record],
        *,
        selectable: bool = False,
        server_side: bool = False,
        total_items: int | None = None,
        filter_configs: Sequence[FilterConfig] | None = None,
        initial_sort: SortSpec | None = None,
        key: str = "id",
        page_size: int | None = None,
        page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS,
        sync_url: bool = False,
    ):
        """Build (or rebuild) the engine for this state and client.

        This is a **generator** -- use ``yield from self.set_datatable(...)``
        inside your event handler so the loading state reaches the
        frontend before the first query runs.

        Args:
            columns: Column descriptors.
            records: All records (client-paged) or the first page
                (``server_side=True``).
            selectable: Show row checkboxes.
            server_side: Delegate sort/filter/page to :meth:`_fetch_dt_page`.
            total_items: Server-side total row count.
            filter_configs: Filter controls; derived from the columns
                when omitted.
            initial_sort: Optional starting sort.
            key: Record identity field.
            page_size: Starting page size.
            page_size_options: Page size presets offered in the footer.
            sync_url: Mirror filters into the page URL query string and
                restore them from it on load.
        """
        self.dt_loading = True  # type: ignore[assignment]
        yield

        cache_id = f"{type(self).__name__}:{self.router.session.client_token}"
        _drop_engine(cache_id)
        self._dt_cache_id = cache_id  # type: ignore[assignment]
        self._dt_sync_url = sync_url  # type: ignore[assignment]

        bridge = None
        if sync_url:
            params = {str(k): str(v) for k, v in self.router.page.params.items()}
            bridge = _get_bridge(self.router.session.client_token, params)

        pagination = {"pageSize": page_size} if page_size else None
        engine = DataGridEngine(
            columns,
            records,
            pagination=pagination,
            total_items=total_items,
            selectable=selectable,
            server_side=server_side,
            filter_configs=filter_configs,
            initial_sort=initial_sort,
            key=key,
            page_size_options=page_size_options,
            view_key=type(self).__name__ if sync_url else None,
            bridge=bridge,
        )
        _engine_registry[cache_id] = engine
        logger.info(
            "[DataTable] %s ready: %d records, %d columns%s",
            type(self).__name__, len(records), len(engine.columns),
            " (server-paged)" if server_side else "",
        )

        self.dt_filters = [_filter_view(c) for c in engine.filters.configs]  # type: ignore[assignment]
        self.dt_loaded = True  # type: ignore[assignment]
        if server_side and engine.filters.entries:
            # Filters restored from the URL: the first page must be refetched.
            self._dt_fetch(engine)
        self._dt_sync_vars(engine)
        self.dt_loading = False  # type: ignore[assignment]

    def _fetch_dt_page(
        self,
        sort_model: list[dict[str, Any]],
        filter_params: list[dict[str, Any]],
        page_model: dict[str, int],
    ) -> tuple[Sequence[Record], int]:
        """Return ``(records, total_items)`` for a server-paged table.

        Override in subclasses that pass ``server_side=True``.
        """
        raise NotImplementedError(
            f"{type(self).__name__} is server-paged but does not override _fetch_dt_page()"
        )

    def _on_dt_row_click(self, record: Record) -> Any:
        """Hook called with the clicked record.  Return events to chain them."""
        return None

    def _on_dt_action(self, record: Record, action: str) -> Any:
        """Hook called when an action button of *record* is pressed."""
        return None

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def handle_dt_sort(self, field: str):
        engine = self._dt_engine()
        if engine is None:
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield
        if engine.sort(field) is not None and engine.server_side:
            self._dt_fetch(engine)
        self._dt_sync_vars(engine)
        self.dt_loading = False  # type: ignore[assignment]

    def handle_dt_filter(self, filter_id: str, value: str):
        """Apply one filter control value.  Empty strings clear the filter.

        Text inputs are debounced in the browser (``debounce_timeout``),
        so this runs once per pause in typing.
        """
        engine = self._dt_engine()
        if engine is None:
            return
        config = engine.filters.config(filter_id)
        if config is None:
            return
        parsed: Any = value
        if value and config.filter_type in _PARSED_FILTER_TYPES:
            try:
                parsed = parse_value(config, value)
            except ValueError as exc:
                logger.debug("[DataTable] ignoring filter %r=%r (%s)", filter_id, value, exc)
                return
        self.dt_loading = True  # type: ignore[assignment]
        yield
        yield from self._dt_after_filter(engine, engine.filter(filter_id, parsed))

    def handle_dt_filter_toggle(self, filter_id: str, option: str, checked: bool):
        """Add or remove one option of a multi-select filter."""
        engine = self._dt_engine()
        if engine is None:
            return
        config = engine.filters.config(filter_id)
        if config is None or config.filter_type != FilterType.multi_select:
            return
        try:
            [item] = parse_value(config, option)
        except ValueError as exc:
            logger.debug("[DataTable] ignoring option %r of %r (%s)", option, filter_id, exc)
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield
        yield from self._dt_after_filter(engine, engine.toggle_filter_option(filter_id, item, bool(checked)))

    def handle_dt_filter_bound(self, filter_id: str, bound: str, value: str):
        """Set one end (``start``/``end`` or ``min``/``max``) of a range filter."""
        engine = self._dt_engine()
        if engine is None:
            return
        current = dict(engine.filters.draft_values().get(filter_id) or {})
        current[bound] = value or None
        self.dt_loading = True  # type: ignore[assignment]
        yield
        yield from self._dt_after_filter(engine, engine.filter(filter_id, current))

    def handle_dt_clear_filters(self):
        engine = self._dt_engine()
        if engine is None:
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield
        yield from self._dt_after_filter(engine, engine.clear_filters())

    def handle_dt_page(self, page: int):
        engine = self._dt_engine()
        if engine is None:
            return
        before = engine.pagination.model()
        if engine.change_page(int(page)) != before and engine.server_side:
            self._dt_fetch(engine)
        self._dt_sync_vars(engine)

    def handle_dt_page_size(self, page_size: str):
        engine = self._dt_engine()
        if engine is None:
            return
        try:
            size = int(page_size)
        except ValueError:
            logger.debug("[DataTable] ignoring page size %r", page_size)
            return
        before = engine.pagination.model()
        if engine.change_page_size(size) != before and engine.server_side:
            self._dt_fetch(engine)
        self._dt_sync_vars(engine)

    def handle_dt_toggle_row(self, key: str) -> None:
        engine = self._dt_engine()
        if engine is None:
            return
        record = self._dt_find(engine, key)
        if record is not None:
            engine.toggle_row(record)
        self._dt_sync_vars(engine)

    def handle_dt_toggle_all(self, checked: bool) -> None:
        engine = self._dt_engine()
        if engine is None:
            return
        engine.toggle_all(bool(checked))
        self._dt_sync_vars(engine)

    def handle_dt_row_click(self, key: str):
        engine = self._dt_engine()
        if engine is None:
            return None
        record = self._dt_find(engine, key)
        if record is None:
            return None
        self.dt_active_row = key  # type: ignore[assignment]
        engine.click_row(record)
        return self._on_dt_row_click(record)

    def handle_dt_action(self, key: str, action: str):
        engine = self._dt_engine()
        if engine is None:
            return None
        record = self._dt_find(engine, key)
        if record is None:
            return None
        return self._on_dt_action(record, action)

    def handle_dt_viewport(self, width: int) -> None:
        """Receive ``window.innerWidth`` from the browser and relayout.

        :func:`~reflex_datatable.components.data_table` reports the width
        once on mount, so the layout is fixed until the table remounts.
        Pages that need live resizing can call this handler themselves.
        """
        engine = self._dt_engine()
        if engine is None:
            return
        try:
            viewport = classify_viewport(float(width))
        except (TypeError, ValueError):
            return
        if viewport != engine.viewport:
            engine.set_viewport(viewport)
            self._dt_sync_vars(engine)

    def handle_dt_unmount(self) -> None:
        """Drop the engine (and the client's URL bridge once unused)."""
        if self._dt_cache_id:
            _drop_engine(self._dt_cache_id)
            if self._dt_sync_url:
                _release_bridge(self.router.session.client_token)
        self.dt_loaded = False  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dt_engine(self) -> DataGridEngine | None:
        if not self._dt_cache_id:
            return None
        return _get_engine(self._dt_cache_id)

    @staticmethod
    def _dt_find(engine: DataGridEngine, key: str) -> Record | None:
        for record in engine.visible_records:
            if str(engine.record_key(record)) == key:
                return record
        return None

    def _dt_fetch(self, engine: DataGridEngine) -> None:
        records, total = self._fetch_dt_page(
            engine.sorter.sort_model(),
            engine.filters.filter_params(),
            engine.pagination.model(),
        )
        engine.set_data(records, total)

    def _dt_after_filter(self, engine: DataGridEngine, changed: bool):
        if changed and engine.server_side:
            self._dt_fetch(engine)
        self._dt_sync_vars(engine)
        self.dt_loading = False  # type: ignore[assignment]
        if changed and self._dt_sync_url and engine.bridge is not None:
            query = engine.bridge.query_string()
            url = json.dumps(f"?{query}" if query else "")
            yield rx.call_script(
                f"window.history.replaceState(null, '', {url} || window.location.pathname)"
            )

    def _dt_sync_vars(self, engine: DataGridEngine) -> None:
        """Copy the engine's render output into the ``dt_*`` vars."""
        view: GridView = engine.render()
        align = {h.field: h.align for h in view.headers}
        actions_fields = {c.field for c in engine.columns if c.data_type == "actions"}

        self.dt_mode = view.mode  # type: ignore[assignment]
        self.dt_headers = [  # type: ignore[assignment]
            DtHeader(
                field=h.field,
                label=h.label,
                align=h.align,
                width=f"{h.width}px" if h.width else "auto",
                sortable=h.sortable,
                sort_direction=h.sort_direction or "",
                filter_active=h.filter_active,
            )
            for h in view.headers
        ]
        self.dt_rows = [  # type: ignore[assignment]
            DtRow(
                key=str(row.key),
                cells=[
                    _to_cell(cell, align[h.field], actions=h.field in actions_fields)
                    for h, cell in zip(view.headers, row.cells)
                ],
                selected=row.selected,
            )
            for row in view.rows
        ]
        self.dt_cards = [  # type: ignore[assignment]
            DtCard(
                key=str(card.key),
                title=_to_cell(card.title),
                fields=[DtCardField(label=f.label, cell=_to_cell(f.value)) for f in card.fields],
                actions=_action_labels(card.actions),
                selected=card.selected,
            )
            for card in view.cards
        ]

        values: dict[str, str] = {}
        multi: list[str] = []
        drafts = engine.filters.draft_values()
        for config in engine.filters.configs:
            value = drafts.get(config.id)
            if value is None:
                continue
            if config.filter_type == FilterType.multi_select:
                multi.extend(f"{config.id}={_option_text(config, item)}" for item in value)
            if isinstance(value, dict):
                for bound, bound_value in value.items():
                    values[f"{config.id}.{bound}"] = "" if bound_value is None else str(bound_value)
            else:
                values[config.id] = serialize_value(config, value)
        self.dt_filter_values = values  # type: ignore[assignment]
        self.dt_multi_selected = multi  # type: ignore[assignment]
        self.dt_active_filter_count = len(view.filter_params)  # type: ignore[assignment]

        self.dt_selectable = view.selection.enabled  # type: ignore[assignment]
        self.dt_selected_count = view.selection.count  # type: ignore[assignment]
        self.dt_selected_keys = [str(k) for k in view.selection.selected_keys]  # type: ignore[assignment]
        self.dt_all_selected = view.selection.all_selected  # type: ignore[assignment]
        self.dt_indeterminate = view.selection.indeterminate  # type: ignore[assignment]

        meta = view.pagination
        self.dt_page = meta.page  # type: ignore[assignment]
        self.dt_page_size = meta.page_size  # type: ignore[assignment]
        self.dt_total_pages = meta.total_pages  # type: ignore[assignment]
        self.dt_total_items = meta.total_items  # type: ignore[assignment]
        self.dt_range_label = meta.label  # type: ignore[assignment]
        self.dt_page_size_options = [str(n) for n in meta.page_size_options]  # type: ignore[assignment]

        self.dt_empty = view.empty  # type: ignore[assignment]
        self.dt_empty_message = view.empty_message  # type: ignore[assignment]
        self.dt_query = engine.bridge.query_string() if engine.bridge is not None else ""  # type: ignore[assignment]
