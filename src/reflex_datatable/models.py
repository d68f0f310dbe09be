"""Pydantic models for table columns, sort/filter state and filter configuration."""

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator

Record = Mapping[str, Any]

DataType = Literal["string", "number", "date", "boolean", "currency", "status", "actions"]
SortDirection = Literal["asc", "desc"]
Viewport = Literal["mobile", "tablet", "desktop"]


class ColumnConfigError(ValueError):
    """Raised when a column or filter configuration is unusable.

    These are integration bugs (duplicate fields, a ``status`` column
    without a ``status_group``, ...) and are reported at setup time
    instead of being absorbed like runtime data anomalies.
    """


class FilterOperator(str, Enum):
    contains = "contains"
    equals = "equals"
    in_ = "in"
    between = "between"
    gte = "gte"
    lte = "lte"


class FilterType(str, Enum):
    text = "text"
    select = "select"
    multi_select = "multiSelect"
    date = "date"
    date_range = "dateRange"
    number = "number"
    boolean = "boolean"


class ColumnDescriptor(BaseModel):
    """Static description of one displayable field of a record.

    ``field`` is the key read from each record; the engine never reads a
    record field that no descriptor names.

    Attributes:
        field: Unique key into a record.
        label: Header text (also the label of card fields on mobile).
        data_type: Drives default formatting, alignment and filter type.
        sortable: Whether the header offers a sort toggle.
        filterable: Whether a filter config is derived for this column.
        hidden: Hidden columns are never rendered in any layout.
        width: Optional fixed width in pixels.
        custom_render: ``(value, record) -> renderable``; always wins.
        custom_format: ``(value) -> str``; used when no renderer is set.
        status_group: Lookup group for ``status`` badges.  Required iff
            ``data_type == "status"``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str
    label: str = ""
    data_type: DataType = "string"
    sortable: bool = True
    filterable: bool = True
    hidden: bool = False
    width: int | None = None
    custom_render: Callable[[Any, Record], Any] | None = None
    custom_format: Callable[[Any], Any] | None = None
    status_group: str | None = None

    @property
    def header(self) -> str:
        return self.label or self.field.strip("_").replace("_", " ").title()


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    direction: SortDirection = "asc"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "direction": self.direction}


class FilterEntry(BaseModel):
    """One active ``(operator, value)`` constraint keyed by ``filter_id``.

    Range controls (date range, number range) are a *single* entry whose
    value is a ``{"start", "end"}`` or ``{"min", "max"}`` dict.
    """

    model_config = ConfigDict(frozen=True)

    filter_id: str
    field: str
    operator: FilterOperator
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}


class FilterOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str | int | float | bool
    label: str


class FilterConfig(BaseModel):
    """Configuration of one filter control.

    Attributes:
        id: Filter id; the key of the entry in the filter model and in the
            shareable URL representation.
        label: Control label.
        filter_type: Control type, which picks the default operator.
        field: Record field the filter constrains.
        operator: Explicit operator; ``None`` uses the per-type default.
        options: Choices for select / multi-select controls.
        default_value: Value shown when nothing is set.
        placeholder: Placeholder text for text controls.
        min: Lower bound; with ``max`` turns a number control into a range.
        max: Upper bound.
        step: Slider / spinner step.
        paired_with: Id of the start date control of a start/end pair.
            The control that sets it is the end; the two are filtered as
            one ``between`` entry keyed by the start id.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    filter_type: FilterType = FilterType.text
    field: str = ""
    operator: FilterOperator | None = None
    options: list[FilterOption] | None = None
    default_value: Any = None
    placeholder: str | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None
    paired_with: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_field(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("field"):
            data = {**data, "field": data.get("id", "")}
        return data

    @property
    def is_range(self) -> bool:
        """Whether values of this control are ``{start,end}``/``{min,max}`` pairs."""
        if self.filter_type == FilterType.date_range:
            return True
        if self.filter_type == FilterType.number:
            return self.min is not None and self.max is not None
        return False


def validate_columns(columns: Sequence[ColumnDescriptor]) -> list[ColumnDescriptor]:
    """Check a column set for setup errors and return it as a list.

    Raises:
        ColumnConfigError: If the set is empty, ``field`` is not unique, or
            ``status_group`` is missing on a status column (or set on any
            other column).
    """
    cols = list(columns)
    if not cols:
        raise ColumnConfigError("A table needs at least one column")
    seen: set[str] = set()
    for col in cols:
        if col.field in seen:
            raise ColumnConfigError(f"Duplicate column field: {col.field!r}")
        seen.add(col.field)
        if col.data_type == "status" and not col.status_group:
            raise ColumnConfigError(
                f"Column {col.field!r} has data_type='status' but no status_group"
            )
        if col.data_type != "status" and col.status_group is not None:
            raise ColumnConfigError(
                f"Column {col.field!r} sets status_group but is not a status column"
            )
    return cols


def validate_filter_configs(configs: Sequence[FilterConfig]) -> list[FilterConfig]:
    """Check ids are unique, bounds are ordered and pairings point at date filters."""
    cfgs = list(configs)
    by_id: dict[str, FilterConfig] = {}
    for cfg in cfgs:
        if cfg.id in by_id:
            raise ColumnConfigError(f"Duplicate filter id: {cfg.id!r}")
        if cfg.min is not None and cfg.max is not None and cfg.min > cfg.max:
            raise ColumnConfigError(f"Filter {cfg.id!r} has min > max")
        by_id[cfg.id] = cfg
    starts: set[str] = set()
    for cfg in cfgs:
        if cfg.paired_with is None:
            continue
        partner = by_id.get(cfg.paired_with)
        if partner is None or partner.filter_type != FilterType.date:
            raise ColumnConfigError(
                f"Filter {cfg.id!r} is paired with {cfg.paired_with!r}, "
                "which is not a date filter"
            )
        if cfg.filter_type != FilterType.date or partner.paired_with is not None:
            raise ColumnConfigError(f"Filter {cfg.id!r} cannot end a date pair")
        if partner.id in starts:
            raise ColumnConfigError(f"Date filter {partner.id!r} is paired twice")
        starts.add(partner.id)
    return cfgs
