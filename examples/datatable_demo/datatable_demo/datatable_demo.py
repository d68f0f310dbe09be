"""Example Reflex app demonstrating the data table.

Two tabs:
  1. Claims -- client-paged: all claims are handed to the table, which
     sorts, filters and pages them in memory.  Filters are mirrored into
     the URL so a filtered view can be bookmarked.
  2. Payments (server-paged) -- the table only holds the current page and
     calls ``_fetch_dt_page`` for every sort, filter or page change.  The
     "server" here is a polars LazyFrame.
"""

import datetime
import random
from collections.abc import Sequence
from typing import Any

import polars as pl
import reflex as rx

from reflex_datatable import (
    ColumnDescriptor,
    DataTableMixin,
    FilterConfig,
    FilterOption,
    FilterType,
    SortSpec,
    data_table,
)

# ---------------------------------------------------------------------------
# Sample data builders
# ---------------------------------------------------------------------------

_PAYERS = ["Aetna", "Cigna", "Humana", "Medicare", "UnitedHealthcare"]
_CLAIM_STATUSES = ["DRAFT", "SUBMITTED", "PENDING", "PAID", "DENIED", "PARTIAL_PAID"]


def _build_claims(n: int = 137) -> list[dict[str, Any]]:
    """Create deterministic sample claims."""
    rng = random.Random(42)
    start = datetime.date(2024, 1, 1)
    claims = []
    for i in range(1, n + 1):
        claims.append(
            {
                "id": i,
                "claim_number": f"CLM-{i:05d}",
                "patient": f"Patient {rng.randint(100, 999)}",
                "payer": rng.choice(_PAYERS),
                "service_date": (start + datetime.timedelta(days=rng.randint(0, 365))).isoformat(),
                "amount": round(rng.uniform(50, 5000), 2),
                "status": rng.choice(_CLAIM_STATUSES),
                "actions": ["View", "Void"],
            }
        )
    return claims


def _build_payments_lazyframe(n: int = 2_500) -> pl.LazyFrame:
    rng = random.Random(7)
    return pl.LazyFrame(
        {
            "id": list(range(1, n + 1)),
            "reference": [f"PAY-{i:06d}" for i in range(1, n + 1)],
            "payer": [rng.choice(_PAYERS) for _ in range(n)],
            "amount": [round(rng.uniform(10, 2500), 2) for _ in range(n)],
            "status": [rng.choice(["RECEIVED", "MATCHED", "RECONCILED", "EXCEPTION"]) for _ in range(n)],
        }
    )


CLAIMS: list[dict[str, Any]] = _build_claims()
PAYMENTS: pl.LazyFrame = _build_payments_lazyframe()

CLAIM_COLUMNS = [
    ColumnDescriptor(field="claim_number", label="Claim #", width=120),
    ColumnDescriptor(field="patient"),
    ColumnDescriptor(field="payer", filterable=False),
    ColumnDescriptor(field="service_date", label="Date of service", data_type="date"),
    ColumnDescriptor(field="amount", data_type="currency"),
    ColumnDescriptor(field="status", data_type="status", status_group="claim"),
    ColumnDescriptor(field="actions", label="", data_type="actions", sortable=False, filterable=False),
]

CLAIM_FILTERS = [
    FilterConfig(id="claim_number", label="Claim #", filter_type=FilterType.text, placeholder="Search claims"),
    FilterConfig(
        id="payer",
        label="Payer",
        filter_type=FilterType.select,
        options=[FilterOption(value=p, label=p) for p in _PAYERS],
    ),
    FilterConfig(id="service_date", label="Date of service", filter_type=FilterType.date_range),
    FilterConfig(id="amount", label="Amount", filter_type=FilterType.number, min=0, max=10_000),
    FilterConfig(
        id="status",
        label="Status",
        filter_type=FilterType.select,
        options=[FilterOption(value=s, label=s.replace("_", " ").title()) for s in _CLAIM_STATUSES],
    ),
]

PAYMENT_COLUMNS = [
    ColumnDescriptor(field="reference"),
    ColumnDescriptor(field="payer"),
    ColumnDescriptor(field="amount", data_type="currency"),
    ColumnDescriptor(field="status", data_type="status", status_group="reconciliation"),
]


def _payments_page(
    sort_model: list[dict[str, Any]],
    filter_params: list[dict[str, Any]],
    page_model: dict[str, int],
) -> tuple[list[dict[str, Any]], int]:
    """Answer a page request against the payments LazyFrame."""
    lf = PAYMENTS
    for item in filter_params:
        col = pl.col(item["field"])
        value = item["value"]
        if item["operator"] == "contains":
            lf = lf.filter(col.cast(pl.String).str.to_lowercase().str.contains(str(value).lower(), literal=True))
        elif item["operator"] == "between":
            if value.get("min") is not None:
                lf = lf.filter(col >= value["min"])
            if value.get("max") is not None:
                lf = lf.filter(col <= value["max"])
        else:
            lf = lf.filter(col == value)
    total = lf.select(pl.len()).collect().item()
    for entry in sort_model:
        lf = lf.sort(entry["field"], descending=entry["direction"] == "desc", nulls_last=True)
    offset = (page_model["page"] - 1) * page_model["pageSize"]
    rows = lf.slice(offset, page_model["pageSize"]).collect().to_dicts()
    return rows, total


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class ClaimsState(DataTableMixin, rx.State):
    """Client-paged claims table."""

    last_event: str = "Click a claim or one of its actions."

    def load(self):
        yield from self.set_datatable(
            CLAIM_COLUMNS,
            CLAIMS,
            selectable=True,
            filter_configs=CLAIM_FILTERS,
            initial_sort=SortSpec(field="service_date", direction="desc"),
            sync_url=True,
        )

    def _on_dt_row_click(self, record: dict[str, Any]) -> None:
        self.last_event = f"Opened {record['claim_number']} ({record['status']})"

    def _on_dt_action(self, record: dict[str, Any], action: str) -> None:
        self.last_event = f"{action} requested for {record['claim_number']}"


class PaymentsState(DataTableMixin, rx.State):
    """Server-paged payments table backed by a polars LazyFrame."""

    def load(self):
        rows, total = _payments_page([], [], {"page": 1, "pageSize": 25})
        yield from self.set_datatable(
            PAYMENT_COLUMNS,
            rows,
            server_side=True,
            total_items=total,
        )

    def _fetch_dt_page(
        self,
        sort_model: list[dict[str, Any]],
        filter_params: list[dict[str, Any]],
        page_model: dict[str, int],
    ) -> tuple[Sequence[dict[str, Any]], int]:
        return _payments_page(sort_model, filter_params, page_model)


# ---------------------------------------------------------------------------
# UI
# ---------------------------------------------------------------------------

def claims_tab() -> rx.Component:
    return rx.box(
        rx.hstack(
            rx.text(ClaimsState.dt_selected_count.to(str), " selected", size="2"),  # type: ignore[union-attr]
            rx.text("|", size="2", color="var(--gray-7)"),
            rx.text(ClaimsState.last_event, size="2", color="var(--gray-11)"),
            spacing="2",
            margin_bottom="0.5em",
        ),
        data_table(ClaimsState),
        padding_top="1em",
    )


def payments_tab() -> rx.Component:
    return rx.box(
        rx.text(
            "Payments are paged on the server: only the visible page is held by the table.",
            margin_bottom="1em",
            color="var(--gray-11)",
        ),
        data_table(PaymentsState),
        padding_top="1em",
    )


def index() -> rx.Component:
    """Render the main page with tabs."""
    return rx.box(
        rx.heading("Data Table -- Reflex Demo", size="6", margin_bottom="1em"),
        rx.tabs.root(
            rx.tabs.list(
                rx.tabs.trigger("Claims", value="claims"),
                rx.tabs.trigger("Payments (server-paged)", value="payments"),
            ),
            rx.tabs.content(claims_tab(), value="claims"),
            rx.tabs.content(payments_tab(), value="payments"),
            default_value="claims",
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=[ClaimsState.load, PaymentsState.load])
