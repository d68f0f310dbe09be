"""Single-column sort state machine."""

import logging
from collections.abc import Callable
from typing import Any

from reflex_datatable.models import SortSpec

logger = logging.getLogger(__name__)


class SortController:
    """Holds at most one active :class:`SortSpec`.

    ``toggle(field)`` on a new field starts ascending; on the active field
    it flips the direction.  Once a field is chosen there is no way back to
    "unsorted" short of :meth:`reset` (view teardown): repeated toggles
    cycle ``asc -> desc -> asc -> ...``.

    Rejecting toggles on non-sortable columns is the caller's job; the
    controller accepts any field name.
    """

    def __init__(
        self,
        initial: SortSpec | None = None,
        on_change: Callable[[list[dict[str, Any]]], None] | None = None,
    ) -> None:
        self._spec: SortSpec | None = initial
        self._on_change = on_change

    @property
    def sort_spec(self) -> SortSpec | None:
        return self._spec

    def direction_for(self, field: str) -> str | None:
        """Active direction for *field*, or ``None`` if it is not the sort field."""
        if self._spec is not None and self._spec.field == field:
            return self._spec.direction
        return None

    def toggle(self, field: str) -> SortSpec:
        if self._spec is not None and self._spec.field == field:
            direction = "desc" if self._spec.direction == "asc" else "asc"
        else:
            direction = "asc"
        self._spec = SortSpec(field=field, direction=direction)
        logger.debug("[DataTable] sort -> %s %s", field, direction)
        if self._on_change is not None:
            self._on_change(self.sort_model())
        return self._spec

    def sort_model(self) -> list[dict[str, Any]]:
        """Outbound payload: ``[]`` or ``[{"field": ..., "direction": ...}]``."""
        return [self._spec.to_dict()] if self._spec is not None else []

    def reset(self) -> None:
        self._spec = None
