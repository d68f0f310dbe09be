"""Module-level defaults shared by the table engine and its Reflex wrappers.

Every value here can be overridden per table through constructor or
``set_datatable`` arguments; these are only the starting points.
"""

# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

DEFAULT_PAGE_SIZE: int = 25
PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 25, 50, 100)

# ---------------------------------------------------------------------------
# Responsive breakpoints (pixels, lower bound of each bucket)
# ---------------------------------------------------------------------------

BREAKPOINTS: dict[str, int] = {
    "xs": 0,
    "sm": 576,
    "md": 768,
    "lg": 992,
    "xl": 1200,
    "xxl": 1400,
}

# ---------------------------------------------------------------------------
# Debounce delays (milliseconds)
# ---------------------------------------------------------------------------

DEBOUNCE_DELAY_MS: dict[str, int] = {
    "search": 300,
    "filter": 500,
}

# ---------------------------------------------------------------------------
# Cell formatting
# ---------------------------------------------------------------------------

DATE_DISPLAY_FORMAT: str = "%m/%d/%Y"
CURRENCY_SYMBOL: str = "$"
NEUTRAL_STATUS_COLOR: str = "#9AA5B1"
EMPTY_MESSAGE: str = "No data to display"
