"""Filter synchronisation bridge: mirrors filters into a shareable URL query.

Views register their filter configurations under a view key; the bridge
keeps one shared ``{filter_id: value}`` map and, when synchronisation is
enabled, mirrors it into a flat ``{str: str}`` representation (the URL
query string).  On load, external pairs are read back -- but only for keys
that a registered configuration recognises, so arbitrary query
parameters never turn into filters.

Value encoding (exactly reversible by :func:`parse_value`):

* date -> ``YYYY-MM-DD``
* date range / number range -> ``start..end`` (either side may be empty)
* multi-select -> comma-joined, each item percent-encoded
* boolean -> ``true`` / ``false``
* number -> Python text form (``3``, ``2.5``)
* text -> the value itself
* select / multi-select items -> the option value as text.  Items that
  are not among the configured options keep their type: numbers and
  booleans are written as above and text that would read back as one
  of those is prefixed with ``~``.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import parse_qsl, quote, unquote, urlencode

from reflex_datatable.filtering import (
    coerce_number,
    is_empty_value,
    normalize_value,
    range_keys,
)
from reflex_datatable.models import FilterConfig, FilterOption, FilterType

logger = logging.getLogger(__name__)

RANGE_SEPARATOR = ".."
LIST_SEPARATOR = ","
TEXT_ESCAPE = "~"


def _option_to_text(value: Any, options: list[FilterOption] | None) -> str:
    """Encode a select value; values outside *options* keep their type."""
    if any(option.value == value for option in options or []):
        return scalar_to_text(value)
    return _typed_to_text(value)


def _restore_option(text: str, options: list[FilterOption] | None) -> Any:
    """Map a serialised option back to its typed option value."""
    for option in options or []:
        if scalar_to_text(option.value) == text:
            return option.value
    return _typed_from_text(text)


def _typed_to_text(value: Any) -> str:
    if not isinstance(value, str):
        return scalar_to_text(value)
    if value.startswith(TEXT_ESCAPE) or _typed_from_text(value) != value:
        # Text that would read back as a number or boolean.
        return TEXT_ESCAPE + value
    return value


def _typed_from_text(text: str) -> Any:
    if text.startswith(TEXT_ESCAPE):
        return text[len(TEXT_ESCAPE):]
    if text in ("true", "false"):
        return text == "true"
    number = coerce_number(text)
    return text if number is None else number


def scalar_to_text(value: Any) -> str:
    """Text form of an option or scalar value (booleans as ``true``/``false``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_value(config: FilterConfig, value: Any) -> str:
    """Encode one normalised filter value as a URL-safe string."""
    keys = range_keys(config)
    if keys is not None:
        lo, hi = value.get(keys[0]), value.get(keys[1])
        return f"{'' if lo is None else lo}{RANGE_SEPARATOR}{'' if hi is None else hi}"
    if config.filter_type == FilterType.multi_select:
        return LIST_SEPARATOR.join(quote(_option_to_text(v, config.options), safe="") for v in value)
    if config.filter_type == FilterType.select:
        return _option_to_text(value, config.options)
    return scalar_to_text(value)


def parse_value(config: FilterConfig, text: str) -> Any:
    """Decode a string produced by :func:`serialize_value`.

    Raises:
        ValueError: If *text* is not a valid encoding for this control.
    """
    keys = range_keys(config)
    ft = config.filter_type
    if keys is not None:
        if RANGE_SEPARATOR not in text:
            raise ValueError(f"range value without {RANGE_SEPARATOR!r}: {text!r}")
        lo_text, hi_text = text.split(RANGE_SEPARATOR, 1)
        lo = lo_text or None
        hi = hi_text or None
        if ft == FilterType.number:
            lo = None if lo is None else _parse_number(lo)
            hi = None if hi is None else _parse_number(hi)
        return {keys[0]: lo, keys[1]: hi}
    if ft == FilterType.multi_select:
        if not text:
            return []
        return [_restore_option(unquote(part), config.options) for part in text.split(LIST_SEPARATOR)]
    if ft == FilterType.number:
        return _parse_number(text)
    if ft == FilterType.boolean:
        if text not in ("true", "false"):
            raise ValueError(f"not a boolean: {text!r}")
        return text == "true"
    if ft == FilterType.select:
        return _restore_option(text, config.options)
    return text


def _parse_number(text: str) -> int | float:
    number = coerce_number(text)
    if number is None:
        raise ValueError(f"not a number: {text!r}")
    return number


class FilterSyncBridge:
    """Process-wide registry of view filter configs plus a shared filter map.

    Args:
        sync_enabled: Mirror the shared map into :attr:`external`.
        external: Initial external key/value pairs (e.g. the query
            parameters of the page URL), read by :meth:`load`.
    """

    def __init__(self, sync_enabled: bool = True, external: Mapping[str, str] | None = None) -> None:
        self.sync_enabled = sync_enabled
        self._registry: dict[str, list[FilterConfig]] = {}
        self._filters: dict[str, Any] = {}
        self.external: dict[str, str] = dict(external or {})

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, view_key: str, configs: Sequence[FilterConfig]) -> None:
        """Claim *view_key*; a second registration replaces the first."""
        self._registry[view_key] = list(configs)
        logger.debug("[DataTable] registered filter view %r (%d configs)", view_key, len(configs))

    def unregister(self, view_key: str) -> None:
        """Release *view_key*.  Already-synced values stay until cleared."""
        if self._registry.pop(view_key, None) is not None:
            logger.debug("[DataTable] unregistered filter view %r", view_key)

    def registered_keys(self) -> list[str]:
        return list(self._registry)

    def config_for(self, key: str) -> FilterConfig | None:
        """First registered config with filter id *key*, if any."""
        for configs in self._registry.values():
            for config in configs:
                if config.id == key:
                    return config
        return None

    # ------------------------------------------------------------------
    # Shared filter map
    # ------------------------------------------------------------------

    def global_filters(self) -> dict[str, Any]:
        return dict(self._filters)

    def set_global(self, key: str, value: Any) -> None:
        if is_empty_value(value):
            self.clear_global(key)
            return
        config = self.config_for(key)
        if config is not None:
            try:
                value = normalize_value(config, value)
            except ValueError as exc:
                logger.debug("[DataTable] ignoring shared filter %r=%r (%s)", key, value, exc)
                return
        self._filters[key] = value
        if self.sync_enabled:
            self.external[key] = (
                serialize_value(config, value) if config is not None else scalar_to_text(value)
            )

    def clear_global(self, key: str) -> None:
        self._filters.pop(key, None)
        if self.sync_enabled:
            self.external.pop(key, None)

    def clear_all_global(self) -> None:
        if self.sync_enabled:
            for key in self._filters:
                self.external.pop(key, None)
        self._filters = {}

    def view_values(self, view_key: str) -> dict[str, Any]:
        """Shared values recognised by the configs registered under *view_key*."""
        ids = {c.id for c in self._registry.get(view_key, [])}
        return {k: v for k, v in self._filters.items() if k in ids}

    def sync_view(self, view_key: str, values: Mapping[str, Any]) -> None:
        """Make the shared map reflect *values* for every filter of *view_key*."""
        for config in self._registry.get(view_key, []):
            if config.id in values and not is_empty_value(values[config.id]):
                self.set_global(config.id, values[config.id])
            else:
                self.clear_global(config.id)

    # ------------------------------------------------------------------
    # External representation
    # ------------------------------------------------------------------

    def load(self, params: Mapping[str, str] | None = None) -> dict[str, Any]:
        """Seed the shared map from external pairs for known keys only.

        Args:
            params: External pairs to read; defaults to :attr:`external`.

        Returns:
            The values that were loaded.
        """
        if not self.sync_enabled:
            return {}
        if params is not None:
            self.external = dict(params)
        loaded: dict[str, Any] = {}
        for key, text in self.external.items():
            config = self.config_for(key)
            if config is None:
                continue
            try:
                value = parse_value(config, text)
            except ValueError as exc:
                logger.debug("[DataTable] ignoring external filter %r=%r (%s)", key, text, exc)
                continue
            if is_empty_value(value):
                continue
            self._filters[key] = value
            loaded[key] = value
        return loaded

    def query_string(self) -> str:
        return urlencode(sorted(self.external.items()))

    def load_query_string(self, query: str) -> dict[str, Any]:
        return self.load(dict(parse_qsl(query.lstrip("?"), keep_blank_values=False)))


# ---------------------------------------------------------------------------
# Process-wide singleton
# ---------------------------------------------------------------------------

_bridge: FilterSyncBridge | None = None


def get_filter_bridge() -> FilterSyncBridge:
    """Return (or create) the process-wide bridge."""
    global _bridge
    if _bridge is None:
        _bridge = FilterSyncBridge()
    return _bridge


def reset_filter_bridge() -> None:
    global _bridge
    _bridge = None
