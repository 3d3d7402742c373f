"""Rounding remainder reconciliation tests."""

from decimal import Decimal

import pytest

from groupsplit.exceptions import EmptyShareSetError, RoundingError
from groupsplit.models import Share
from groupsplit.money import has_money_scale, to_cents, to_money, to_ratio
from groupsplit.reconciler import compute_residual, reconcile_remainder


def make_shares(*amounts: str) -> list[Share]:
    """Create shares for participants 1..n with the given amounts."""
    return [
        Share(participant_id=index, share_amount=Decimal(amount))
        for index, amount in enumerate(amounts, start=1)
    ]


class TestReconcilePerfectMatch:
    """Cases where no adjustment is needed."""

    def test_whole_amounts(self):
        shares = make_shares("10.00", "20.00", "70.00")

        reconciled = reconcile_remainder(shares, Decimal("100.00"))

        assert [s.share_amount for s in reconciled] == [
            Decimal("10.00"),
            Decimal("20.00"),
            Decimal("70.00"),
        ]

    def test_returns_new_list(self):
        shares = make_shares("50.00", "50.00")

        reconciled = reconcile_remainder(shares, Decimal("100.00"))

        assert reconciled == shares
        assert reconciled is not shares


class TestReconcileResiduals:
    """Cases where the last share absorbs a residual."""

    def test_one_cent_short(self):
        """Three 3.33 shares of 10.00 leave one cent for the last share."""
        shares = make_shares("3.33", "3.33", "3.33")

        reconciled = reconcile_remainder(shares, Decimal("10.00"))

        assert [s.share_amount for s in reconciled] == [
            Decimal("3.33"),
            Decimal("3.33"),
            Decimal("3.34"),
        ]

    def test_one_cent_over(self):
        shares = make_shares("40.00", "60.01")

        reconciled = reconcile_remainder(shares, Decimal("100.00"))

        assert reconciled[-1].share_amount == Decimal("60.00")
        assert sum(s.share_amount for s in reconciled) == Decimal("100.00")

    def test_last_share_absorbs_even_if_smallest(self):
        """Unlike a largest-share rule, supply order decides who absorbs."""
        shares = make_shares("90.00", "9.99")

        reconciled = reconcile_remainder(shares, Decimal("100.00"))

        assert reconciled[0].share_amount == Decimal("90.00")
        assert reconciled[1].share_amount == Decimal("10.00")

    def test_largest_share_absorbs_when_last_would_empty(self):
        """A one-cent last share can't take a one-cent overshoot."""
        shares = make_shares("100.00", "0.01")

        reconciled = reconcile_remainder(shares, Decimal("100.00"))

        assert [s.share_amount for s in reconciled] == [Decimal("99.99"), Decimal("0.01")]

    def test_largest_share_fallback_prefers_first_on_ties(self):
        shares = make_shares("5.00", "5.00", "0.01")

        reconciled = reconcile_remainder(shares, Decimal("10.00"))

        assert [s.share_amount for s in reconciled] == [
            Decimal("4.99"),
            Decimal("5.00"),
            Decimal("0.01"),
        ]

    def test_other_fields_preserved(self):
        shares = [
            Share(participant_id=1, share_amount=Decimal("3.33"), percentage=Decimal("0.3333")),
            Share(participant_id=2, share_amount=Decimal("6.66"), percentage=Decimal("0.6667")),
        ]

        reconciled = reconcile_remainder(shares, Decimal("10.00"))

        assert reconciled[1].participant_id == 2
        assert reconciled[1].percentage == Decimal("0.6667")
        assert reconciled[1].share_amount == Decimal("6.67")

    def test_input_not_mutated(self):
        shares = make_shares("3.33", "3.33", "3.33")

        reconcile_remainder(shares, Decimal("10.00"))

        assert shares[-1].share_amount == Decimal("3.33")

    @pytest.mark.parametrize("count", [2, 3, 6, 7, 9, 13])
    def test_sum_always_exact(self, count):
        """Rounded equal fractions always reconcile to the total."""
        total = Decimal("100.00")
        amount = to_money(total / count)
        shares = make_shares(*([str(amount)] * count))

        reconciled = reconcile_remainder(shares, total)

        assert sum(s.share_amount for s in reconciled) == total


class TestReconcileFailures:
    """Cases that can't be reconciled."""

    def test_empty_share_set(self):
        with pytest.raises(EmptyShareSetError):
            reconcile_remainder([], Decimal("10.00"))

    def test_residual_exceeds_every_share(self):
        shares = make_shares("5.00", "5.00")

        with pytest.raises(RoundingError) as exc_info:
            reconcile_remainder(shares, Decimal("5.00"))

        assert exc_info.value.residual == Decimal("-5.00")
        assert exc_info.value.expected == Decimal("5.00")
        assert exc_info.value.actual == Decimal("10.00")


class TestComputeResidual:
    """Tests for compute_residual."""

    def test_positive_residual(self):
        assert compute_residual(make_shares("3.33", "3.33"), Decimal("6.67")) == Decimal(
            "0.01"
        )

    def test_missing_amounts_count_as_zero(self):
        shares = [Share(participant_id=1), Share(participant_id=2, share_amount=Decimal("4"))]

        assert compute_residual(shares, Decimal("10")) == Decimal("6.00")


class TestMoneyHelpers:
    """Tests for the fixed-point helpers."""

    def test_to_money_rounds_half_up(self):
        assert to_money("0.125") == Decimal("0.13")
        assert to_money("0.135") == Decimal("0.14")
        assert to_money("-0.125") == Decimal("-0.13")

    def test_to_money_from_float_uses_repr(self):
        assert to_money(0.1) == Decimal("0.10")

    def test_to_ratio_has_ten_places(self):
        assert to_ratio(Decimal(1) / Decimal(3)) == Decimal("0.3333333333")

    def test_to_cents(self):
        assert to_cents(Decimal("12.34")) == 1234
        assert to_cents(Decimal("0.005")) == 1

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1", True),
            ("1.5", True),
            ("1.50", True),
            ("40.000", True),
            ("1.505", False),
            ("1.5050", False),
            ("1E+2", True),
        ],
    )
    def test_has_money_scale(self, value, expected):
        assert has_money_scale(Decimal(value)) is expected
