"""
Tests for LotSelector reporting queries.

Covers:
- Bucket summaries and bucket listing
- Movement history ordering
- Ownership alerts (types, severities, ordering)
- Unpaid supplier exposure
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ownership_kernel.domain.lots import BucketKey
from ownership_kernel.selectors.lot_selector import AlertThresholds, LotSelector
from ownership_kernel.services.consumption_allocator import ConsumptionAllocator
from ownership_kernel.services.payment_allocator import PaymentAllocator
from tests.conftest import SELF_BUCKET, SUPPLIER_BUCKET

OTHER_BRANCH = BucketKey(item_id="RING-22K", branch_id="BR-2", supplier_id="SUP-1")
SECOND_SUPPLIER = BucketKey(item_id="RING-22K", branch_id="BR-1", supplier_id="SUP-2")


@pytest.fixture
def selector(session) -> LotSelector:
    return LotSelector(session)


class TestBucketSummary:
    def test_totals_over_active_lots(self, uow, make_lot, selector):
        make_lot("5", "50", "500.00")
        make_lot("5", "50", "500.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("250.00"))

        summary = selector.bucket_summary(SUPPLIER_BUCKET)

        assert summary.active_lots == 2
        assert summary.total_quantity == Decimal("10")
        assert summary.total_cost == Decimal("1000.00")
        assert summary.amount_paid == Decimal("250.00")
        assert summary.outstanding_amount == Decimal("750.00")
        assert summary.ownership_percentage == Decimal("0.25")
        assert summary.owned_quantity == Decimal("2.5")
        assert not summary.is_fully_owned

    def test_fully_owned_bucket(self, make_lot, selector):
        make_lot(bucket=SELF_BUCKET, fully_owned=True)

        summary = selector.bucket_summary(SELF_BUCKET)

        assert summary.ownership_percentage == Decimal("1")
        assert summary.is_fully_owned

    def test_empty_bucket(self, selector):
        summary = selector.bucket_summary(SUPPLIER_BUCKET)

        assert summary.active_lots == 0
        assert summary.ownership_percentage == Decimal("0")
        assert not summary.is_fully_owned

    def test_list_buckets(self, make_lot, selector):
        make_lot()
        make_lot()
        make_lot(bucket=SELF_BUCKET, fully_owned=True)
        make_lot(bucket=OTHER_BRANCH)

        assert selector.list_buckets("BR-1") == [(SELF_BUCKET, 1), (SUPPLIER_BUCKET, 2)]
        assert len(selector.list_buckets()) == 3


class TestMovements:
    def test_newest_first(self, uow, make_lot, selector, deterministic_clock):
        lot = make_lot("10", "100", "1000.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("500.00"))
        deterministic_clock.advance(60)
        ConsumptionAllocator().deplete(uow, SUPPLIER_BUCKET, Decimal("1"))

        movements = selector.get_movements(lot.lot_id)

        assert [m.movement_type for m in movements] == ["depletion", "payment", "created"]
        assert [m.lot_version for m in movements] == [3, 2, 1]
        assert movements[0].owned_quantity_after == Decimal("4")

    def test_unknown_lot_has_no_history(self, selector):
        assert selector.get_movements(uuid4()) == []


class TestOwnershipAlerts:
    def test_unpaid_lot_raises_both_alerts(self, make_lot, selector):
        lot = make_lot("10", "100", "1000.00", reference="PO-7")

        alerts = selector.get_ownership_alerts()

        assert [(a.alert_type, a.severity) for a in alerts] == [
            ("LowOwnership", "High"),
            ("OutstandingPayment", "Medium"),
        ]
        assert alerts[0].message == "Low ownership percentage: 0.00%"
        assert alerts[1].message == "Outstanding payment: 1000.00"
        assert all(a.lot_id == lot.lot_id for a in alerts)

    def test_medium_low_ownership(self, uow, make_lot, selector):
        make_lot("10", "100", "1000.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("300.00"))

        low = [a for a in selector.get_ownership_alerts() if a.alert_type == "LowOwnership"]

        assert low[0].severity == "Medium"
        assert low[0].message == "Low ownership percentage: 30.00%"

    def test_large_outstanding_is_high_severity(self, uow, make_lot, selector):
        make_lot("10", "100", "20000.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("15000.00"))

        alerts = selector.get_ownership_alerts()

        assert [(a.alert_type, a.severity) for a in alerts] == [("OutstandingPayment", "Medium")]

        make_lot("10", "100", "20000.00")
        newest = selector.get_ownership_alerts()[:2]
        assert [a.severity for a in newest] == ["High", "High"]

    def test_settled_lots_raise_nothing(self, make_lot, selector):
        make_lot(bucket=SELF_BUCKET, fully_owned=True)
        assert selector.get_ownership_alerts() == []

    def test_newest_lot_first_and_branch_filter(self, make_lot, selector):
        older = make_lot(reference="PO-OLD")
        newer = make_lot(reference="PO-NEW")
        make_lot(bucket=OTHER_BRANCH)

        alerts = selector.get_ownership_alerts("BR-1")

        assert [a.lot_id for a in alerts] == [newer.lot_id, newer.lot_id, older.lot_id, older.lot_id]

    def test_custom_thresholds(self, session, make_lot):
        make_lot("10", "100", "500.00")
        selector = LotSelector(
            session,
            thresholds=AlertThresholds(
                low_ownership=Decimal("0"),
                high_severity_ownership=Decimal("0"),
                high_outstanding_amount=Decimal("100"),
            ),
        )

        alerts = selector.get_ownership_alerts()

        assert [(a.alert_type, a.severity) for a in alerts] == [("OutstandingPayment", "High")]


class TestUnpaidSupplierExposure:
    def test_grouped_by_item_and_branch(self, uow, make_lot, selector):
        make_lot("10", "100", "1000.00", reference="PO-A")
        make_lot("4", "40", "400.00", bucket=SECOND_SUPPLIER, reference="PO-B")
        make_lot(bucket=SELF_BUCKET, fully_owned=True)
        PaymentAllocator().allocate_payment(uow, SECOND_SUPPLIER, Decimal("100.00"))

        (risk,) = selector.get_unpaid_supplier_exposure("BR-1")

        assert (risk.item_id, risk.branch_id) == ("RING-22K", "BR-1")
        assert risk.total_outstanding_amount == Decimal("1300.00")
        assert risk.available_quantity == Decimal("1")
        assert [(s.supplier_id, s.payment_status) for s in risk.unpaid_suppliers] == [
            ("SUP-1", "unpaid"),
            ("SUP-2", "partial"),
        ]

    def test_settled_stock_carries_no_risk(self, uow, make_lot, selector):
        make_lot("1", "10", "100.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("100.00"))

        assert selector.get_unpaid_supplier_exposure() == []
