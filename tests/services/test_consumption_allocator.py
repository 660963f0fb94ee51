"""
Tests for ConsumptionAllocator.

Covers:
- Oldest-first quantity depletion and lot deactivation
- All-or-nothing rejection on insufficient ownership
- Weight depletion for manufacturing
- Payment state untouched by depletion
- Depletion movements
"""

from decimal import Decimal

import pytest

from ownership_kernel.domain.lots import ItemKind
from ownership_kernel.exceptions import InsufficientOwnershipError, InvalidQuantityError
from ownership_kernel.selectors.lot_selector import LotSelector
from ownership_kernel.services.consumption_allocator import ConsumptionAllocator
from ownership_kernel.services.payment_allocator import PaymentAllocator
from tests.conftest import SELF_BUCKET, SUPPLIER_BUCKET


@pytest.fixture
def consumer() -> ConsumptionAllocator:
    return ConsumptionAllocator()


@pytest.fixture
def owned_pair(make_lot):
    """Owned 5 units (older) and 3 units (newer) in the supplier bucket."""
    return (
        make_lot("5", "50", "500.00", fully_owned=True),
        make_lot("3", "30", "360.00", fully_owned=True),
    )


def _lots(uow, bucket=SUPPLIER_BUCKET):
    return LotSelector(uow.session).get_lots(bucket, include_inactive=True)


class TestQuantityDepletion:
    def test_oldest_first(self, uow, consumer, owned_pair):
        allocations = consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("6"))

        older, newer = _lots(uow)
        assert older.owned_quantity == Decimal("0")
        assert not older.is_active
        assert newer.owned_quantity == Decimal("2")
        assert newer.owned_weight == Decimal("20")
        assert [a.quantity for a in allocations] == [Decimal("5"), Decimal("1")]
        assert [a.lot_id for a in allocations] == [l.lot_id for l in owned_pair]

    def test_exhausted_lot_leaves_active_set(self, uow, consumer, owned_pair):
        consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("5"))

        active = LotSelector(uow.session).get_lots(SUPPLIER_BUCKET)
        assert [l.lot_id for l in active] == [owned_pair[1].lot_id]

    def test_payment_state_untouched(self, uow, make_lot, consumer):
        lot = make_lot("10", "100", "1000.00")
        PaymentAllocator().allocate_payment(uow, SUPPLIER_BUCKET, Decimal("400.00"))

        consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("1"))

        after = LotSelector(uow.session).get_lot(lot.lot_id)
        assert after.amount_paid == Decimal("400.00")
        assert after.outstanding_amount == Decimal("600.00")
        assert after.ownership_percentage == Decimal("0.4")
        assert after.owned_quantity == Decimal("3")

    def test_self_owned_bucket(self, uow, make_lot, consumer):
        make_lot("4", "40", "400.00", bucket=SELF_BUCKET, fully_owned=True)

        consumer.deplete(uow, SELF_BUCKET, Decimal("4"))

        (lot,) = _lots(uow, SELF_BUCKET)
        assert not lot.is_active


class TestInsufficientOwnership:
    def test_nothing_changes(self, uow, consumer, owned_pair):
        with pytest.raises(InsufficientOwnershipError) as exc_info:
            consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("100"))

        assert exc_info.value.available == Decimal("8")
        assert exc_info.value.shortfall == Decimal("92")
        older, newer = _lots(uow)
        assert older.owned_quantity == Decimal("5") and older.is_active
        assert newer.owned_quantity == Decimal("3") and newer.is_active
        assert older.version == owned_pair[0].version

    def test_unpaid_stock_cannot_be_depleted(self, uow, make_lot, consumer):
        make_lot("10", "100", "1000.00")
        with pytest.raises(InsufficientOwnershipError):
            consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("1"))

    @pytest.mark.parametrize("quantity", ["0", "-2"])
    def test_non_positive_rejected(self, uow, consumer, owned_pair, quantity):
        with pytest.raises(InvalidQuantityError):
            consumer.deplete(uow, SUPPLIER_BUCKET, Decimal(quantity))


class TestWeightDepletion:
    def test_raw_material_consumed_by_weight(self, uow, make_lot, consumer):
        make_lot("0", "100", "6000.00", fully_owned=True, kind=ItemKind.RAW_MATERIAL)
        make_lot("0", "50", "3000.00", fully_owned=True, kind=ItemKind.RAW_MATERIAL)

        allocations = consumer.deplete_weight(uow, SUPPLIER_BUCKET, Decimal("120"))

        first, second = _lots(uow)
        assert not first.is_active
        assert second.owned_weight == Decimal("30")
        assert [a.weight for a in allocations] == [Decimal("100"), Decimal("20")]

    def test_insufficient_weight(self, uow, make_lot, consumer):
        make_lot("0", "10", "600.00", fully_owned=True, kind=ItemKind.RAW_MATERIAL)

        with pytest.raises(InsufficientOwnershipError) as exc_info:
            consumer.deplete_weight(uow, SUPPLIER_BUCKET, Decimal("10.5"))

        assert exc_info.value.measure == "weight"


class TestMovements:
    def test_depletion_movements(self, uow, consumer, owned_pair):
        consumer.deplete(uow, SUPPLIER_BUCKET, Decimal("6"), reference="SALE-9")

        selector = LotSelector(uow.session)
        older_moves = selector.get_movements(owned_pair[0].lot_id)
        assert [m.movement_type for m in older_moves] == ["depletion", "created"]
        assert older_moves[0].quantity_delta == Decimal("-5")
        assert older_moves[0].reference == "SALE-9"
        assert selector.get_movements(owned_pair[1].lot_id)[0].owned_quantity_after == Decimal("2")
