"""Client-side filtering and sorting of in-memory record lists with polars.

Only the fields a filter or sort actually references are copied into a
small polars DataFrame next to a row-index column.  The result of each
query is a list of the *original* record objects in the new order, so
records are never copied or mutated and identity-based selection keeps
working.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import polars as pl

from reflex_datatable.filtering import coerce_number
from reflex_datatable.formatting import parse_date
from reflex_datatable.models import (
    ColumnDescriptor,
    DataType,
    FilterEntry,
    FilterOperator,
    Record,
    SortSpec,
)

logger = logging.getLogger(__name__)

ROW_INDEX = "__row_index__"


def records_to_frame(records: Sequence[Record], fields: Iterable[str]) -> pl.DataFrame:
    """Build a DataFrame with a row index plus the requested *fields*.

    Missing fields read as null.  Mixed-type columns are coerced to their
    polars supertype (``strict=False``).
    """
    data: dict[str, list[Any]] = {ROW_INDEX: list(range(len(records)))}
    for field in dict.fromkeys(fields):
        data[field] = [_read(record, field) for record in records]
    return pl.DataFrame(data, strict=False)


def _read(record: Record, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _is_date_like(dtype: pl.DataType, data_type: DataType | None) -> bool:
    return data_type == "date" or isinstance(dtype, (pl.Date, pl.Datetime))


def _str_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    if isinstance(dtype, pl.List):
        return col.cast(pl.List(pl.String)).list.join(",")
    return col.cast(pl.String)


def _date_operand(col: pl.Expr, dtype: pl.DataType) -> tuple[pl.Expr, bool]:
    """Return ``(expr, compare_as_text)`` for a date-ish column."""
    if isinstance(dtype, pl.Date):
        return col, False
    if isinstance(dtype, pl.Datetime):
        return col.dt.date(), False
    # ISO strings compare correctly as text on their date prefix.
    return col.cast(pl.String).str.slice(0, 10), True


def _bounds(entry: FilterEntry) -> tuple[Any, Any]:
    value = entry.value
    if entry.operator == FilterOperator.gte:
        return value, None
    if entry.operator == FilterOperator.lte:
        return None, value
    if isinstance(value, Mapping):
        lo = value.get("start", value.get("min"))
        hi = value.get("end", value.get("max"))
        return lo, hi
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return value[0], value[1]
    return None, None


def _range_expr(operand: pl.Expr, lo: Any, hi: Any) -> pl.Expr | None:
    exprs: list[pl.Expr] = []
    if lo is not None:
        exprs.append(operand >= pl.lit(lo))
    if hi is not None:
        exprs.append(operand <= pl.lit(hi))
    if not exprs:
        return None
    return exprs[0] if len(exprs) == 1 else exprs[0] & exprs[1]


def build_filter_expr(
    entry: FilterEntry,
    dtype: pl.DataType,
    data_type: DataType | None = None,
) -> pl.Expr | None:
    """Translate one filter entry to a polars expression.

    Args:
        entry: The filter entry (field, operator, value).
        dtype: The polars dtype of the field's column.
        data_type: The column's declared data type, when a column describes
            the field; used to treat ISO-string columns as dates.

    Returns:
        A boolean polars expression, or ``None`` when the entry cannot be
        applied (e.g. a non-numeric bound on a numeric column).
    """
    col = pl.col(entry.field)
    op = entry.operator
    value = entry.value
    numeric = dtype.is_numeric()

    if op == FilterOperator.contains:
        needle = str(value).lower()
        return _str_expr(col, dtype).str.to_lowercase().str.contains(needle, literal=True)

    if op == FilterOperator.in_:
        items = value if isinstance(value, (list, tuple, set)) else [value]
        if numeric:
            nums = [n for n in (coerce_number(v) for v in items) if n is not None]
            return col.is_in(nums) if nums else None
        if isinstance(dtype, pl.Boolean):
            return col.is_in([bool(v) for v in items])
        return _str_expr(col, dtype).is_in([str(v) for v in items])

    if op == FilterOperator.equals:
        if isinstance(dtype, pl.Boolean):
            return col == pl.lit(bool(value))
        if numeric:
            number = coerce_number(value)
            return None if number is None else col == number
        if _is_date_like(dtype, data_type):
            operand, as_text = _date_operand(col, dtype)
            day = parse_date(value)
            return operand == pl.lit(day.isoformat() if as_text else day)
        return _str_expr(col, dtype) == str(value)

    if op in (FilterOperator.between, FilterOperator.gte, FilterOperator.lte):
        lo, hi = _bounds(entry)
        if _is_date_like(dtype, data_type):
            operand, as_text = _date_operand(col, dtype)
            lo_d = parse_date(lo) if lo is not None else None
            hi_d = parse_date(hi) if hi is not None else None
            if as_text:
                return _range_expr(
                    operand,
                    lo_d.isoformat() if lo_d else None,
                    hi_d.isoformat() if hi_d else None,
                )
            return _range_expr(operand, lo_d, hi_d)
        if numeric:
            lo_n = coerce_number(lo) if lo is not None else None
            hi_n = coerce_number(hi) if hi is not None else None
            if (lo is not None and lo_n is None) or (hi is not None and hi_n is None):
                return None
            return _range_expr(col, lo_n, hi_n)
        return _range_expr(
            _str_expr(col, dtype),
            None if lo is None else str(lo),
            None if hi is None else str(hi),
        )

    return None


def filter_records(
    records: Sequence[Record],
    entries: Sequence[FilterEntry],
    columns: Sequence[ColumnDescriptor] = (),
) -> list[Record]:
    """Keep the records that match *all* filter entries."""
    if not entries or not records:
        return list(records)

    data_types: dict[str, DataType] = {c.field: c.data_type for c in columns}
    try:
        df = records_to_frame(records, (e.field for e in entries))
    except (pl.exceptions.PolarsError, TypeError, ValueError) as exc:
        logger.warning("[DataTable] cannot load filter fields (%s); showing unfiltered rows", exc)
        return list(records)

    exprs: list[pl.Expr] = []
    for entry in entries:
        dtype = df.schema[entry.field]
        if isinstance(dtype, pl.Null):
            logger.debug("[DataTable] no record has field %r; filter ignored", entry.field)
            continue
        try:
            expr = build_filter_expr(entry, dtype, data_types.get(entry.field))
        except (ValueError, TypeError) as exc:
            logger.debug("[DataTable] skipping filter %s (%s)", entry.to_dict(), exc)
            continue
        if expr is not None:
            exprs.append(expr)

    if not exprs:
        return list(records)

    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined & e

    try:
        kept = df.filter(combined).get_column(ROW_INDEX).to_list()
    except pl.exceptions.PolarsError as exc:
        logger.warning("[DataTable] filter evaluation failed (%s); showing unfiltered rows", exc)
        return list(records)
    return [records[i] for i in kept]


def sort_records(
    records: Sequence[Record],
    sort_spec: SortSpec | None,
) -> list[Record]:
    """Stable single-column sort; nulls always last."""
    if sort_spec is None or len(records) < 2:
        return list(records)

    try:
        df = records_to_frame(records, [sort_spec.field])
        order = (
            df.sort(
                sort_spec.field,
                descending=sort_spec.direction == "desc",
                nulls_last=True,
                maintain_order=True,
            )
            .get_column(ROW_INDEX)
            .to_list()
        )
    except (pl.exceptions.PolarsError, TypeError, ValueError) as exc:
        logger.warning("[DataTable] cannot sort by %r (%s); keeping order", sort_spec.field, exc)
        return list(records)
    return [records[i] for i in order]


def query_records(
    records: Sequence[Record],
    entries: Sequence[FilterEntry] = (),
    sort_spec: SortSpec | None = None,
    columns: Sequence[ColumnDescriptor] = (),
) -> list[Record]:
    """Filter, then sort.  Slicing to a page is the caller's job."""
    return sort_records(filter_records(records, entries, columns), sort_spec)
