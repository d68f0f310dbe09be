"""Viewport classification and layout selection.

* desktop -> full table: every non-hidden column.
* tablet  -> reduced table: desktop minus ``actions`` columns.
* mobile  -> one stacked card per record: first non-hidden column as the
  title, other non-hidden, non-actions columns as label/value pairs in
  declaration order, and the ``actions`` column as a trailing action row.
"""

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict

from reflex_datatable.config import BREAKPOINTS
from reflex_datatable.models import ColumnDescriptor, Viewport

LayoutMode = Literal["table", "reduced_table", "cards"]


class Layout(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: LayoutMode
    visible_columns: list[ColumnDescriptor]
    title_column: ColumnDescriptor | None = None
    detail_columns: list[ColumnDescriptor] = []
    action_column: ColumnDescriptor | None = None
    show_sort_affordances: bool = True
    show_filter_triggers: bool = True


def classify_viewport(width_px: int | float, breakpoints: dict[str, int] = BREAKPOINTS) -> Viewport:
    """Bucket a viewport width: below ``md`` is mobile, below ``lg`` tablet."""
    if width_px < breakpoints["md"]:
        return "mobile"
    if width_px < breakpoints["lg"]:
        return "tablet"
    return "desktop"


def choose_layout(viewport: Viewport, columns: Sequence[ColumnDescriptor]) -> Layout:
    shown = [c for c in columns if not c.hidden]

    if viewport == "mobile":
        title = shown[0] if shown else None
        action = next((c for c in shown if c.data_type == "actions"), None)
        details = [
            c for c in shown
            if c is not title and c.data_type != "actions"
        ]
        return Layout(
            mode="cards",
            visible_columns=shown,
            title_column=title,
            detail_columns=details,
            action_column=action if action is not title else None,
            show_sort_affordances=False,
            show_filter_triggers=False,
        )

    if viewport == "tablet":
        return Layout(
            mode="reduced_table",
            visible_columns=[c for c in shown if c.data_type != "actions"],
        )

    return Layout(mode="table", visible_columns=shown)
