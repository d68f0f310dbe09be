"""Cell formatting: raw record value + column descriptor -> renderable value.

Resolution order (first match wins):

1. ``column.custom_render(value, record)``
2. ``column.custom_format(value)``
3. ``None`` -> ``""``
4. type-based default for ``column.data_type``
5. ``str(value)``

Any exception raised while formatting is absorbed here and the cell falls
back to ``str(value)``, so one malformed record never blanks a whole table.
"""

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from reflex_datatable.config import CURRENCY_SYMBOL, DATE_DISPLAY_FORMAT, NEUTRAL_STATUS_COLOR
from reflex_datatable.models import ColumnDescriptor, Record

logger = logging.getLogger(__name__)


# Badge colours keyed by status group, then by upper-cased status value.
STATUS_COLORS: dict[str, dict[str, str]] = {
    "claim": {
        "DRAFT": "#9AA5B1",
        "VALIDATED": "#2196F3",
        "SUBMITTED": "#FF9800",
        "ACKNOWLEDGED": "#FF9800",
        "PENDING": "#FF9800",
        "PAID": "#4CAF50",
        "DENIED": "#F44336",
        "APPEALED": "#9C27B0",
        "PARTIAL_PAID": "#FFC107",
        "VOIDED": "#616E7C",
    },
    "documentation": {
        "DOCUMENTED": "#4CAF50",
        "INCOMPLETE": "#F44336",
        "VALIDATED": "#2196F3",
    },
    "billing": {
        "BILLABLE": "#2196F3",
        "BILLED": "#4CAF50",
        "UNBILLED": "#FF9800",
    },
    "reconciliation": {
        "RECEIVED": "#FF9800",
        "MATCHED": "#2196F3",
        "RECONCILED": "#4CAF50",
        "POSTED": "#4CAF50",
        "EXCEPTION": "#F44336",
    },
}

_TWO_PLACES = Decimal("0.01")


class StatusBadge(BaseModel):
    """A coloured, labelled badge for ``status`` cells."""

    model_config = ConfigDict(frozen=True)

    label: str
    color: str
    known: bool = True

    def __str__(self) -> str:
        return self.label

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "color": self.color, "known": self.known}


def _status_key(value: Any) -> str:
    return str(value).strip().upper().replace(" ", "_").replace("-", "_")


def _humanize_status(value: Any) -> str:
    """``"PARTIAL_PAID"`` -> ``"Partial Paid"``."""
    text = str(value).strip().replace("_", " ").replace("-", " ")
    return text.title() if text else "Unknown"


def status_badge(value: Any, status_group: str) -> StatusBadge:
    """Look up the badge for *value* in *status_group*.

    Values missing from the lookup table (or an unknown group) get the
    neutral colour and a humanised label; this never raises.
    """
    colors = STATUS_COLORS.get(status_group, {})
    color = colors.get(_status_key(value))
    if color is None:
        return StatusBadge(label=_humanize_status(value), color=NEUTRAL_STATUS_COLOR, known=False)
    return StatusBadge(label=_humanize_status(value), color=color)


def status_options(status_group: str) -> list[tuple[str, str]]:
    """Return ``(value, label)`` pairs for every status in *status_group*."""
    return [(key, _humanize_status(key)) for key in STATUS_COLORS.get(status_group, {})]


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError(f"boolean is not a number: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        value = value.strip().replace(",", "").lstrip(CURRENCY_SYMBOL)
    return Decimal(str(value))


def format_number(value: Any, max_fraction_digits: int = 2) -> str:
    """Group thousands and keep at most *max_fraction_digits* decimals.

    ``1234567.891`` -> ``"1,234,567.89"``; ``1250.5`` -> ``"1,250.5"``;
    ``3.0`` -> ``"3"``.
    """
    quantum = Decimal(1).scaleb(-max_fraction_digits)
    number = _to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{number:,.{max_fraction_digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_currency(value: Any, symbol: str = CURRENCY_SYMBOL) -> str:
    """``1250.75`` -> ``"$1,250.75"``; ``-20`` -> ``"-$20.00"``."""
    number = _to_decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    sign = "-" if number < 0 else ""
    return f"{sign}{symbol}{abs(number):,.2f}"


def parse_date(value: Any) -> date:
    """Coerce a ``date``, ``datetime`` or ISO-8601 string into a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    raise TypeError(f"Cannot interpret {type(value).__name__} as a date")


def format_date(value: Any, pattern: str = DATE_DISPLAY_FORMAT) -> str:
    return parse_date(value).strftime(pattern)


TRUE_STRINGS = frozenset({"1", "true", "yes", "y", "on"})
FALSE_STRINGS = frozenset({"0", "false", "no", "n", "off", ""})


def parse_bool(value: Any) -> bool:
    """Read ``True``/``False`` from a bool, a number or a string like ``"false"``.

    Raises:
        ValueError: For strings that are not a known boolean spelling.
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


def format_boolean(value: Any) -> str:
    return "Yes" if parse_bool(value) else "No"


def cell_alignment(column: ColumnDescriptor) -> Literal["left", "right"]:
    """Numbers and currency are right-aligned, everything else left."""
    return "right" if column.data_type in ("number", "currency") else "left"


def _format_by_type(value: Any, column: ColumnDescriptor) -> Any:
    data_type = column.data_type
    if data_type == "string":
        return value if isinstance(value, str) else str(value)
    if data_type == "number":
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return format_number(value)
        return str(value)
    if data_type == "date":
        return format_date(value)
    if data_type == "currency":
        return format_currency(value)
    if data_type == "boolean":
        return format_boolean(value)
    if data_type == "status":
        return status_badge(value, column.status_group or "")
    if data_type == "actions":
        return value
    return str(value)


def format_cell(value: Any, column: ColumnDescriptor, record: Record | None = None) -> Any:
    """Turn a raw *value* into something a view can render directly.

    Args:
        value: The raw field value read from the record.
        column: Descriptor of the column the value belongs to.
        record: The whole record, handed to ``custom_render``.

    Returns:
        Whatever ``custom_render`` returns, else a ``str`` (or a
        :class:`StatusBadge` for ``status`` columns, or the raw value for
        ``actions`` columns).
    """
    try:
        if column.custom_render is not None:
            return column.custom_render(value, record if record is not None else {})
        if column.custom_format is not None:
            return column.custom_format(value)
        if value is None:
            return ""
        return _format_by_type(value, column)
    except (ValueError, TypeError, ArithmeticError, KeyError, AttributeError) as exc:
        logger.warning(
            "[DataTable] could not format %r for column %r (%s); using raw value",
            value, column.field, exc,
        )
        return "" if value is None else str(value)
