"""Row selection scoped to the currently visible page."""

from collections.abc import Callable, Hashable, Sequence
from typing import Any

from reflex_datatable.models import Record


def key_getter(key: str | Callable[[Record], Hashable]) -> Callable[[Record], Hashable]:
    """Build a record -> identity function.

    A string names the identity field; records that lack it fall back to
    object identity so they can still be selected within one page.
    """
    if callable(key):
        return key

    def _get(record: Record) -> Hashable:
        value = record.get(key) if hasattr(record, "get") else None
        return value if value is not None else ("__object__", id(record))

    return _get


class SelectionSet:
    """Selected records of the visible page, with tri-state "select all".

    The set is bound to one visible record list at a time.  Binding a
    different list object (new fetch, new page, re-sort, re-filter) clears
    the selection unconditionally, so an action never runs on records the
    user did not see selected.
    """

    def __init__(self, key: str | Callable[[Record], Hashable] = "id") -> None:
        self._key = key_getter(key)
        self._visible: Sequence[Record] = ()
        self._selected: dict[Hashable, Record] = {}

    def bind(self, visible: Sequence[Record]) -> bool:
        """Point the set at *visible*; return ``True`` if that cleared it."""
        if visible is self._visible:
            return False
        self._visible = visible
        had_selection = bool(self._selected)
        self._selected = {}
        return had_selection

    @property
    def visible(self) -> Sequence[Record]:
        return self._visible

    def key_of(self, record: Record) -> Hashable:
        return self._key(record)

    def toggle_row(self, record: Record) -> list[Record]:
        k = self._key(record)
        if k in self._selected:
            del self._selected[k]
        else:
            self._selected[k] = record
        return self.selected

    def toggle_all(self, checked: bool) -> list[Record]:
        if checked:
            self._selected = {self._key(r): r for r in self._visible}
        else:
            self._selected = {}
        return self.selected

    def select_keys(self, keys: Sequence[Any]) -> list[Record]:
        """Replace the selection with the visible records whose key is in *keys*."""
        wanted = set(keys)
        self._selected = {self._key(r): r for r in self._visible if self._key(r) in wanted}
        return self.selected

    def clear(self) -> None:
        self._selected = {}

    def is_selected(self, record: Record) -> bool:
        return self._key(record) in self._selected

    @property
    def selected(self) -> list[Record]:
        return list(self._selected.values())

    @property
    def selected_keys(self) -> list[Hashable]:
        return list(self._selected)

    @property
    def count(self) -> int:
        return len(self._selected)

    @property
    def is_all_selected(self) -> bool:
        return len(self._visible) > 0 and len(self._selected) == len(self._visible)

    @property
    def is_indeterminate(self) -> bool:
        return 0 < len(self._selected) < len(self._visible)
