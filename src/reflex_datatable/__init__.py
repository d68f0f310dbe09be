"""reflex-datatable – a sortable, filterable, paginated data table for Reflex.

The engine (:class:`DataGridEngine`) is plain Python over polars and can be
driven by any host; :class:`DataTableMixin` and :func:`data_table` wire it
into a Reflex app::

    pip install reflex-datatable
"""

from reflex_datatable.components import data_table, data_table_filter_bar, data_table_pagination
from reflex_datatable.debouncing import FilterDebouncer
from reflex_datatable.engine import DataGridEngine, GridView
from reflex_datatable.filtering import FilterModel, filter_configs_from_columns
from reflex_datatable.formatting import StatusBadge, format_cell, status_badge
from reflex_datatable.models import (
    ColumnConfigError,
    ColumnDescriptor,
    FilterConfig,
    FilterEntry,
    FilterOperator,
    FilterOption,
    FilterType,
    SortSpec,
)
from reflex_datatable.pagination import PaginationController
from reflex_datatable.query import filter_records, query_records, sort_records
from reflex_datatable.responsive import Layout, choose_layout, classify_viewport
from reflex_datatable.selection import SelectionSet
from reflex_datatable.sorting import SortController
from reflex_datatable.state import DataTableMixin
from reflex_datatable.sync import FilterSyncBridge, get_filter_bridge, reset_filter_bridge
