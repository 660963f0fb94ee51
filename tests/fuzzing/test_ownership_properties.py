"""
Hypothesis-based property tests for the ownership calculations.

Properties fuzzed here:
- Pro-rata split: shares sum to the payment exactly and respect caps
- Depletion plan: takes sum to the request, nothing goes negative,
  exhausted lots are deactivated
- apply_share: ownership stays inside [0, 1] and owned stock never
  exceeds the lot totals

Persistence-level behaviour (locking, movements) is covered by the
service and concurrency tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from ownership_engines.allocation import ProRataAllocator, ShareTarget
from ownership_engines.depletion import DepletionMeasure, plan_depletion
from ownership_kernel.domain.lots import BucketKey, ItemKind, OwnershipLot, PaymentMode
from ownership_kernel.domain.precision import DEFAULT_PRECISION, ONE, ZERO
from ownership_kernel.services.payment_allocator import apply_share

BUCKET = BucketKey(item_id="BAR-24K", branch_id="BR-F", supplier_id="SUP-F")
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

FUZZ_SETTINGS = settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

cents = st.integers(min_value=1, max_value=10_000_000).map(lambda c: Decimal(c).scaleb(-2))
milli = st.integers(min_value=1, max_value=1_000_000).map(lambda m: Decimal(m).scaleb(-3))


def _lot(seq: int, quantity: Decimal, weight: Decimal, cost: Decimal, paid: Decimal) -> OwnershipLot:
    outstanding = cost - paid
    pct = DEFAULT_PRECISION.ownership(paid, cost)
    return OwnershipLot(
        lot_id=uuid4(),
        bucket=BUCKET,
        item_kind=ItemKind.PRODUCT,
        source_reference=f"PO-{seq}",
        total_quantity=quantity,
        total_weight=weight,
        total_cost=cost,
        amount_paid=paid,
        outstanding_amount=outstanding,
        ownership_percentage=pct,
        owned_quantity=DEFAULT_PRECISION.quantity(quantity * pct),
        owned_weight=DEFAULT_PRECISION.weight(weight * pct),
        created_at=EPOCH + timedelta(minutes=seq),
        receipt_sequence=seq,
    )


@st.composite
def owned_lots(draw, min_size=1, max_size=6):
    count = draw(st.integers(min_value=min_size, max_value=max_size))
    lots = []
    for seq in range(count):
        cost = draw(cents)
        lots.append(_lot(seq, draw(milli), draw(milli), cost, cost))
    return lots


class TestSplitProperties:
    @FUZZ_SETTINGS
    @given(outstanding=st.lists(cents, min_size=1, max_size=8), data=st.data())
    def test_shares_conserve_payment_and_respect_caps(self, outstanding, data):
        total = sum(outstanding, ZERO)
        amount = data.draw(
            st.integers(min_value=1, max_value=int(total * 100)).map(lambda c: Decimal(c).scaleb(-2))
        )
        targets = [ShareTarget(target_id=str(i), weight=o, cap=o) for i, o in enumerate(outstanding)]

        result = ProRataAllocator().allocate(amount=amount, targets=targets)

        assert result.total_allocated == amount
        for line, cap in zip(result.lines, outstanding):
            assert ZERO <= line.share <= cap
            assert line.share == line.share.quantize(Decimal("0.01"))

    @FUZZ_SETTINGS
    @given(outstanding=st.lists(cents, min_size=1, max_size=8))
    def test_paying_everything_settles_every_target(self, outstanding):
        total = sum(outstanding, ZERO)
        targets = [ShareTarget(target_id=str(i), weight=o, cap=o) for i, o in enumerate(outstanding)]

        result = ProRataAllocator().allocate(amount=total, targets=targets)

        assert [line.share for line in result.lines] == outstanding


class TestDepletionProperties:
    @FUZZ_SETTINGS
    @given(lots=owned_lots(), data=st.data())
    def test_quantity_depletion_conserves(self, lots, data):
        available = sum((l.owned_quantity for l in lots), ZERO)
        assume(available > ZERO)
        requested = data.draw(
            st.integers(min_value=1, max_value=int(available * 1000)).map(lambda m: Decimal(m).scaleb(-3))
        )

        plan = plan_depletion(lots=lots, requested=requested)

        assert plan.sufficient
        assert sum((t.quantity for t in plan.takes), ZERO) == requested
        for take, after in zip(plan.takes, plan.updated_lots):
            assert after.owned_quantity >= ZERO
            assert after.owned_weight >= ZERO
            assert after.is_active == (after.owned_quantity > ZERO)
            assert after.amount_paid == after.total_cost

    @FUZZ_SETTINGS
    @given(lots=owned_lots(), extra=milli)
    def test_over_request_changes_nothing(self, lots, extra):
        available = sum((l.owned_quantity for l in lots), ZERO)

        plan = plan_depletion(lots=lots, requested=available + extra)

        assert not plan.sufficient
        assert plan.takes == ()
        assert plan.shortfall == extra

    @FUZZ_SETTINGS
    @given(lots=owned_lots(), data=st.data())
    def test_weight_depletion_conserves(self, lots, data):
        available = sum((l.owned_weight for l in lots), ZERO)
        assume(available > ZERO)
        requested = data.draw(
            st.integers(min_value=1, max_value=int(available * 1000)).map(lambda m: Decimal(m).scaleb(-3))
        )

        plan = plan_depletion(lots=lots, requested=requested, measure=DepletionMeasure.WEIGHT)

        assert sum((t.weight for t in plan.takes), ZERO) == requested
        assert all(after.owned_quantity >= ZERO for after in plan.updated_lots)


class TestApplyShareProperties:
    @FUZZ_SETTINGS
    @given(
        quantity=milli,
        weight=milli,
        cost=cents,
        paid_ratio=st.integers(min_value=0, max_value=100),
        share_ratio=st.integers(min_value=0, max_value=100),
        mode=st.sampled_from(list(PaymentMode)),
    )
    def test_ownership_stays_bounded(self, quantity, weight, cost, paid_ratio, share_ratio, mode):
        paid = DEFAULT_PRECISION.money(cost * paid_ratio / 100)
        lot = _lot(0, quantity, weight, cost, paid)
        share = DEFAULT_PRECISION.money(lot.outstanding_amount * share_ratio / 100)

        after = apply_share(lot, share, mode, DEFAULT_PRECISION)

        assert after.amount_paid + after.outstanding_amount == cost
        assert ZERO <= after.ownership_percentage <= ONE
        assert (after.outstanding_amount == ZERO) == (after.ownership_percentage == ONE)
        assert ZERO <= after.owned_quantity <= after.total_quantity
        assert ZERO <= after.owned_weight <= after.total_weight
