"""Per-view filter model: ``filter_id -> (operator, value)``.

The model never stores empty values: setting ``None``, ``""``, ``[]``,
``{}`` or a range with both ends empty removes the entry instead.

Two modes are supported:

* ``"live"`` -- every change is applied and reported immediately (compact
  filter bars, per-keystroke search).
* ``"staged"`` -- changes go to a draft; :meth:`FilterModel.apply` copies
  the draft into the applied model and reports once (expandable panels
  with an explicit Apply button).
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal

from reflex_datatable.formatting import parse_bool, parse_date, status_options
from reflex_datatable.models import (
    ColumnConfigError,
    ColumnDescriptor,
    FilterConfig,
    FilterEntry,
    FilterOperator,
    FilterOption,
    FilterType,
    validate_filter_configs,
)

logger = logging.getLogger(__name__)

FilterMode = Literal["live", "staged"]

_RANGE_KEYS: dict[FilterType, tuple[str, str]] = {
    FilterType.date_range: ("start", "end"),
    FilterType.number: ("min", "max"),
}


def default_operator(config: FilterConfig) -> FilterOperator:
    """Operator used when neither the caller nor the config names one."""
    if config.operator is not None:
        return config.operator
    ft = config.filter_type
    if ft == FilterType.text:
        return FilterOperator.contains
    if ft == FilterType.multi_select:
        return FilterOperator.in_
    if ft == FilterType.date_range:
        return FilterOperator.between
    if ft == FilterType.date:
        return FilterOperator.gte
    if ft == FilterType.number and config.is_range:
        return FilterOperator.between
    return FilterOperator.equals


def range_keys(config: FilterConfig) -> tuple[str, str] | None:
    """``("start", "end")`` / ``("min", "max")`` for range controls, else ``None``."""
    if not config.is_range:
        return None
    return _RANGE_KEYS[config.filter_type]


def is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    if isinstance(value, Mapping):
        return all(is_empty_value(v) for v in value.values())
    return False


def coerce_number(value: Any) -> int | float | None:
    """Coerce *value* to ``int`` or ``float``; ``None`` if it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        for conv in (int, float):
            try:  # noqa: SIM105
                return conv(value)
            except ValueError:
                continue
    return None


def _iso_date(value: Any) -> str | None:
    if is_empty_value(value):
        return None
    return parse_date(value).isoformat()


def normalize_value(config: FilterConfig, value: Any) -> Any:
    """Bring a control value into its stored shape.

    * date -> ``"YYYY-MM-DD"``
    * date range -> ``{"start": "YYYY-MM-DD" | None, "end": ...}``
    * number range -> ``{"min": number | None, "max": number | None}``
    * multi-select -> ``list``
    * number -> ``int``/``float``

    Raises:
        ValueError: If the value cannot be interpreted for this control
            (``TypeError`` from date parsing is re-raised as ``ValueError``).
    """
    ft = config.filter_type
    keys = range_keys(config)
    try:
        if keys is not None:
            lo_key, hi_key = keys
            if isinstance(value, Mapping):
                # Also accept the ``startDate``/``endDate`` shape of date pickers.
                lo = value.get(lo_key, value.get(f"{lo_key}Date"))
                hi = value.get(hi_key, value.get(f"{hi_key}Date"))
            elif isinstance(value, (list, tuple)) and len(value) == 2:
                lo, hi = value
            else:
                raise ValueError(f"expected a {lo_key}/{hi_key} pair, got {value!r}")
            if ft == FilterType.date_range:
                return {lo_key: _iso_date(lo), hi_key: _iso_date(hi)}
            return {
                lo_key: None if is_empty_value(lo) else _require_number(lo),
                hi_key: None if is_empty_value(hi) else _require_number(hi),
            }
        if ft == FilterType.date:
            return _iso_date(value)
        if ft == FilterType.multi_select:
            if isinstance(value, (list, tuple, set, frozenset)):
                return list(value)
            return [value]
        if ft == FilterType.number:
            return _require_number(value)
        if ft == FilterType.boolean:
            return parse_bool(value)
        if ft == FilterType.text:
            return str(value)
        return value
    except TypeError as exc:
        raise ValueError(str(exc)) from exc


def _require_number(value: Any) -> int | float:
    number = coerce_number(value)
    if number is None:
        raise ValueError(f"not a number: {value!r}")
    return number


def merge_date_pairs(configs: Sequence[FilterConfig]) -> tuple[list[FilterConfig], dict[str, str]]:
    """Fold each start/end pair of date controls into one date range control.

    The start control becomes a ``dateRange`` control under its own id and
    the end control disappears, so a bounded period is always a single
    ``between`` entry.

    Returns:
        ``(configs, ends)`` where *ends* maps each end id to its start id.
    """
    ends = {c.id: c.paired_with for c in configs if c.paired_with is not None}
    starts = set(ends.values())
    merged: list[FilterConfig] = []
    for config in configs:
        if config.id in ends:
            continue
        if config.id in starts:
            config = config.model_copy(update={"filter_type": FilterType.date_range, "operator": None})
        merged.append(config)
    return merged, ends


def filter_configs_from_columns(columns: Sequence[ColumnDescriptor]) -> list[FilterConfig]:
    """Derive one filter control per filterable column.

    string -> text, number/currency -> number, date -> date,
    boolean -> boolean, status -> select over the status lookup table.
    ``actions`` columns never get a filter.
    """
    configs: list[FilterConfig] = []
    for col in columns:
        if not col.filterable or col.data_type == "actions":
            continue
        options: list[FilterOption] | None = None
        if col.data_type in ("number", "currency"):
            filter_type = FilterType.number
        elif col.data_type == "date":
            filter_type = FilterType.date
        elif col.data_type == "boolean":
            filter_type = FilterType.boolean
        elif col.data_type == "status":
            filter_type = FilterType.select
            options = [
                FilterOption(value=value, label=label)
                for value, label in status_options(col.status_group or "")
            ]
        else:
            filter_type = FilterType.text
        configs.append(
            FilterConfig(
                id=col.field,
                label=col.header,
                field=col.field,
                filter_type=filter_type,
                options=options,
            )
        )
    return configs


class FilterModel:
    """Composable per-field filter state over a static filter configuration.

    Args:
        configs: The filter controls this model accepts.  Ids outside this
            list are ignored.
        mode: ``"live"`` or ``"staged"`` (see module docstring).
        on_change: Called with :meth:`filter_params` whenever the applied
            model changes.
        initial_values: ``{filter_id: value}`` applied at construction and
            restored by :meth:`reset`.
    """

    def __init__(
        self,
        configs: Sequence[FilterConfig],
        *,
        mode: FilterMode = "live",
        on_change: Callable[[list[dict[str, Any]]], None] | None = None,
        initial_values: Mapping[str, Any] | None = None,
    ) -> None:
        if mode not in ("live", "staged"):
            raise ColumnConfigError(f"Unknown filter mode: {mode!r}")
        merged, self._pair_ends = merge_date_pairs(validate_filter_configs(configs))
        self._configs: dict[str, FilterConfig] = {c.id: c for c in merged}
        self.mode: FilterMode = mode
        self._on_change = on_change
        self._initial: dict[str, Any] = self._fold_pairs(initial_values or {})
        self._draft: dict[str, FilterEntry] = {}
        self._applied: dict[str, FilterEntry] = {}
        for filter_id, value in self._initial.items():
            entry = self._build_entry(filter_id, None, value)
            if entry is not None:
                self._draft[filter_id] = entry
        self._applied = dict(self._draft)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def configs(self) -> list[FilterConfig]:
        return list(self._configs.values())

    def config(self, filter_id: str) -> FilterConfig | None:
        return self._configs.get(filter_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(self, filter_id: str, operator: FilterOperator | str | None, value: Any) -> bool:
        """Store (or, for empty values, remove) one filter entry.

        Setting either control of a start/end date pair updates that bound
        of the pair's single range entry.

        Returns:
            ``True`` if the *applied* model changed (always ``False`` in
            staged mode, where only the draft moves).
        """
        if filter_id in self._pair_ends:
            return self._set_bound(self._pair_ends[filter_id], "end", value)
        if filter_id not in self._configs:
            logger.debug("[DataTable] ignoring unknown filter id %r", filter_id)
            return False
        if self._is_pair_start(filter_id) and not isinstance(value, (Mapping, list, tuple)):
            return self._set_bound(filter_id, "start", value)
        if is_empty_value(value):
            return self.clear(filter_id)
        entry = self._build_entry(filter_id, operator, value)
        if entry is None:
            return False
        if self._draft.get(filter_id) == entry:
            return False
        self._draft[filter_id] = entry
        return self._commit_if_live()

    def toggle_option(self, filter_id: str, item: Any, checked: bool) -> bool:
        """Add *item* to (or remove it from) a multi-select filter's list."""
        config = self._configs.get(filter_id)
        if config is None or config.filter_type != FilterType.multi_select:
            logger.debug("[DataTable] %r is not a multi-select filter", filter_id)
            return False
        current = self._draft.get(filter_id)
        items = list(current.value) if current is not None else []
        if checked and item not in items:
            items.append(item)
        elif not checked and item in items:
            items.remove(item)
        else:
            return False
        return self.set(filter_id, None, items)

    def clear(self, filter_id: str) -> bool:
        if filter_id in self._pair_ends:
            return self._set_bound(self._pair_ends[filter_id], "end", None)
        if self._draft.pop(filter_id, None) is None:
            return False
        logger.debug("[DataTable] filter %r cleared", filter_id)
        return self._commit_if_live()

    def clear_all(self) -> bool:
        if not self._draft:
            return False
        self._draft = {}
        return self._commit_if_live()

    def apply(self) -> bool:
        """Copy the draft into the applied model (no-op in live mode)."""
        if self.mode == "live":
            return False
        return self._commit()

    def reset(self) -> bool:
        """Restore ``initial_values`` into the draft (and apply in live mode)."""
        self._draft = {}
        for filter_id, value in self._initial.items():
            entry = self._build_entry(filter_id, None, value)
            if entry is not None:
                self._draft[filter_id] = entry
        return self._commit_if_live()

    def replace(self, values: Mapping[str, Any]) -> bool:
        """Set the whole model from ``{filter_id: value}`` and apply it."""
        self._draft = {}
        for filter_id, value in self._fold_pairs(values).items():
            if filter_id not in self._configs or is_empty_value(value):
                continue
            entry = self._build_entry(filter_id, None, value)
            if entry is not None:
                self._draft[filter_id] = entry
        return self._commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[FilterEntry]:
        return list(self._applied.values())

    @property
    def draft_entries(self) -> list[FilterEntry]:
        return list(self._draft.values())

    @property
    def is_dirty(self) -> bool:
        return self._draft != self._applied

    def values(self) -> dict[str, Any]:
        return {fid: e.value for fid, e in self._applied.items()}

    def draft_values(self) -> dict[str, Any]:
        return {fid: e.value for fid, e in self._draft.items()}

    def filter_params(self) -> list[dict[str, Any]]:
        """Outbound ``[{"field", "operator", "value"}]`` for the host."""
        return [e.to_dict() for e in self._applied.values()]

    def is_active(self, field: str) -> bool:
        return any(e.field == field for e in self._applied.values())

    def __len__(self) -> int:
        return len(self._applied)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_pair_start(self, filter_id: str) -> bool:
        return filter_id in self._pair_ends.values()

    def _set_bound(self, start_id: str, bound: str, value: Any) -> bool:
        current = self._draft.get(start_id)
        pair = dict(current.value) if current is not None else {"start": None, "end": None}
        pair[bound] = None if is_empty_value(value) else value
        return self.set(start_id, None, pair)

    def _fold_pairs(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Turn separate start/end values of date pairs into range values."""
        folded: dict[str, Any] = {}
        for filter_id, value in values.items():
            if filter_id in self._pair_ends:
                start_id, bound = self._pair_ends[filter_id], "end"
            elif self._is_pair_start(filter_id) and not isinstance(value, (Mapping, list, tuple)):
                start_id, bound = filter_id, "start"
            else:
                folded[filter_id] = value
                continue
            pair = folded.get(start_id)
            if not isinstance(pair, dict):
                pair = {"start": None, "end": None}
            folded[start_id] = {**pair, bound: value}
        return folded

    def _build_entry(
        self,
        filter_id: str,
        operator: FilterOperator | str | None,
        value: Any,
    ) -> FilterEntry | None:
        config = self._configs.get(filter_id)
        if config is None or is_empty_value(value):
            return None
        try:
            normalized = normalize_value(config, value)
            op = FilterOperator(operator) if operator is not None else default_operator(config)
        except ValueError as exc:
            logger.debug("[DataTable] ignoring filter %r=%r (%s)", filter_id, value, exc)
            return None
        if is_empty_value(normalized):
            return None
        return FilterEntry(filter_id=filter_id, field=config.field, operator=op, value=normalized)

    def _commit_if_live(self) -> bool:
        if self.mode == "live":
            return self._commit()
        return False

    def _commit(self) -> bool:
        if self._applied == self._draft:
            return False
        self._applied = dict(self._draft)
        logger.debug("[DataTable] filters applied: %s", self.filter_params())
        if self._on_change is not None:
            self._on_change(self.filter_params())
        return True
