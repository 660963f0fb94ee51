"""Input fingerprints and trace records from ownership_engines.tracer."""

from decimal import Decimal

from ownership_engines.tracer import canonical, compute_input_fingerprint, traced_engine
from ownership_kernel.domain.lots import BucketKey


class TestCanonical:

    def test_decimal_scale_ignored(self):
        assert canonical(Decimal("10.00")) == canonical(Decimal("10")) == "10"

    def test_none(self):
        assert canonical(None) == "null"

    def test_mapping_order_ignored(self):
        assert canonical({"b": 1, "a": Decimal("2.0")}) == canonical({"a": Decimal("2"), "b": 1})

    def test_sequences_keep_order(self):
        assert canonical([Decimal("1"), Decimal("2")]) == "[1,2]"
        assert canonical((Decimal("2"), Decimal("1"))) == "[2,1]"

    def test_frozen_record_expanded(self):
        text = canonical(BucketKey(item_id="RING-22K", branch_id="BR-1"))
        assert "item_id:RING-22K" in text
        assert "supplier_id:null" in text


class TestFingerprint:

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("amount",), {"amount": Decimal("5")})
        assert len(fp) == 16
        int(fp, 16)

    def test_equal_amounts_match(self):
        fields = ("amount", "weights")
        a = compute_input_fingerprint(fields, {"amount": Decimal("5.0"), "weights": [Decimal("1")]})
        b = compute_input_fingerprint(fields, {"amount": Decimal("5"), "weights": [Decimal("1.00")]})
        assert a == b

    def test_only_listed_fields_count(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("5"), "note": "x"})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("5"), "note": "y"})
        assert a == b

    def test_missing_field_differs_from_zero(self):
        missing = compute_input_fingerprint(("amount",), {})
        zero = compute_input_fingerprint(("amount",), {"amount": Decimal("0")})
        assert missing != zero


class TestTracedEngine:

    def test_result_passed_through_and_trace_logged(self, captured_logs):
        @traced_engine("test.double", "2.1", fingerprint_fields=("value",))
        def double(*, value):
            return value * 2

        assert double(value=Decimal("4")) == Decimal("8")

        traces = [r for r in captured_logs() if r.get("trace_type") == "OWNERSHIP_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "test.double"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("value",), {"value": Decimal("4")}
        )
        assert trace["function"].endswith("double")
        assert trace["duration_ms"] >= 0

    def test_no_fingerprint_fields(self, captured_logs):
        @traced_engine("test.noop", "1.0")
        def noop():
            return None

        noop()
        trace = next(r for r in captured_logs() if r.get("engine_name") == "test.noop")
        assert trace["input_fingerprint"] == ""
