import pytest

from reflex_datatable.models import ColumnDescriptor
from reflex_datatable.sync import reset_filter_bridge


class ManualHandle:
    def __init__(self, fn):
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Stand-in for timers: nothing fires until :meth:`run_pending`."""

    def __init__(self):
        self.handles = []
        self.delays = []

    def __call__(self, delay_s, fn):
        handle = ManualHandle(fn)
        self.handles.append(handle)
        self.delays.append(delay_s)
        return handle

    def run_pending(self):
        due, self.handles = self.handles, []
        for handle in due:
            if not handle.cancelled:
                handle.fn()

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled]


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture(autouse=True)
def _fresh_bridge():
    reset_filter_bridge()
    yield
    reset_filter_bridge()


@pytest.fixture()
def claim_columns():
    return [
        ColumnDescriptor(field="claim_number", label="Claim #"),
        ColumnDescriptor(field="patient"),
        ColumnDescriptor(field="service_date", label="Date of service", data_type="date"),
        ColumnDescriptor(field="amount", data_type="currency"),
        ColumnDescriptor(field="status", data_type="status", status_group="claim"),
        ColumnDescriptor(field="actions", label="", data_type="actions", sortable=False, filterable=False),
    ]


@pytest.fixture()
def claims():
    return [
        {"id": 1, "claim_number": "CLM-001", "patient": "Ada", "service_date": "2024-03-01",
         "amount": 1250.75, "status": "PAID", "actions": ["View"]},
        {"id": 2, "claim_number": "CLM-002", "patient": "bob", "service_date": "2024-01-15",
         "amount": 80, "status": "DENIED", "actions": ["View"]},
        {"id": 3, "claim_number": "CLM-003", "patient": "Cleo", "service_date": "2024-02-10",
         "amount": None, "status": "PENDING", "actions": ["View"]},
        {"id": 4, "claim_number": "CLM-004", "patient": "Bobby", "service_date": "2023-12-31",
         "amount": 420.5, "status": "PAID", "actions": ["View"]},
        {"id": 5, "claim_number": "CLM-005", "patient": "Dee", "service_date": "2024-03-20",
         "amount": 80, "status": "WEIRD_STATE", "actions": ["View"]},
    ]


@pytest.fixture()
def make_records():
    def _make(n):
        return [{"id": i, "name": f"row {i:03d}", "value": i % 7} for i in range(1, n + 1)]

    return _make
