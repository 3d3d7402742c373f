"""Split policies: per-kind validation and derivation of expense shares.

Each policy is a stateless object exposing ``validate_and_derive``. Policies
never mutate their input; they return new ``Share`` copies with the derived
fields filled in. ``get_split_policy`` maps a split kind to its policy.
"""

from decimal import Decimal
from typing import Protocol

from .exceptions import (
    EmptyShareSetError,
    InvalidPercentageRangeError,
    InvalidShareAmountError,
    PercentageSumMismatchError,
    ShareSumMismatchError,
    UnequalShareMismatchError,
    UnsupportedSplitKindError,
)
from .models import Expense, PercentageFormat, Share, SplitKind
from .money import HUNDRED, ONE, has_money_scale, sum_money, to_money, to_ratio

# One cent, absorbs caller-side rounding of explicit amounts
SHARE_SUM_TOLERANCE = Decimal("0.01")

# Any percentage above this means the share set is written on a 0-100 scale
PERCENT_FORMAT_THRESHOLD = Decimal("1.5")

# format -> (upper bound / expected total, sum tolerance)
PERCENTAGE_RULES: dict[PercentageFormat, tuple[Decimal, Decimal]] = {
    PercentageFormat.FRACTION: (ONE, Decimal("0.0001")),
    PercentageFormat.PERCENT: (HUNDRED, Decimal("0.01")),
}


class SplitPolicy(Protocol):
    """Validates a share set for one split kind and derives missing fields."""

    kind: SplitKind

    def validate_and_derive(self, expense: Expense, shares: list[Share]) -> list[Share]:
        ...


def _require_shares(shares: list[Share]) -> None:
    if not shares:
        raise EmptyShareSetError()


def _require_positive(share: Share, amount: Decimal) -> None:
    if amount <= 0:
        raise InvalidShareAmountError(share.participant_id, amount)


class EqualSplitPolicy:
    """Divide the amount equally; the last share absorbs the remainder.

    With ``T = 100.00`` over three shares the result is
    ``33.33, 33.33, 33.34``. Percentages are ``1/n`` to two places and are
    for display only, they need not add up to exactly 1.
    """

    kind = SplitKind.EQUAL

    def validate_and_derive(self, expense: Expense, shares: list[Share]) -> list[Share]:
        _require_shares(shares)

        count = len(shares)
        total = to_money(expense.amount)
        equal_amount = to_money(total / count)
        last_amount = total - equal_amount * (count - 1)
        percentage = to_money(ONE / count)

        derived = []
        for index, share in enumerate(shares):
            expected = last_amount if index == count - 1 else equal_amount
            if share.share_amount is not None and share.share_amount != expected:
                raise UnequalShareMismatchError(
                    share.participant_id, expected, share.share_amount
                )
            _require_positive(share, expected)
            derived.append(
                share.model_copy(
                    update={"share_amount": expected, "percentage": percentage}
                )
            )

        return derived


class UnequalSplitPolicy:
    """Caller-supplied amounts, accepted within one cent of the total."""

    kind = SplitKind.UNEQUAL

    def validate_and_derive(self, expense: Expense, shares: list[Share]) -> list[Share]:
        _require_shares(shares)

        # A positive share can't exceed the total by more than the tolerance
        ceiling = expense.amount + SHARE_SUM_TOLERANCE

        for share in shares:
            amount = share.share_amount
            if (
                amount is None
                or amount <= 0
                or amount > ceiling
                or not has_money_scale(amount)
            ):
                raise InvalidShareAmountError(share.participant_id, amount)

        total_shares = sum_money(share.share_amount for share in shares)
        if abs(total_shares - expense.amount) > SHARE_SUM_TOLERANCE:
            raise ShareSumMismatchError(
                expected=to_money(expense.amount), actual=to_money(total_shares)
            )

        return [
            share.model_copy(
                update={
                    "share_amount": to_money(share.share_amount),
                    "percentage": to_money(share.share_amount / expense.amount),
                }
            )
            for share in shares
        ]


def detect_percentage_format(shares: list[Share]) -> PercentageFormat:
    """
    Guess the scale of a percentage share set.

    Only used when the expense does not declare ``percentage_format``. A single
    value above 1.5 switches the whole set to the 0-100 reading.
    """
    for share in shares:
        if share.percentage is not None and share.percentage > PERCENT_FORMAT_THRESHOLD:
            return PercentageFormat.PERCENT
    return PercentageFormat.FRACTION


def resolve_percentage_format(expense: Expense, shares: list[Share]) -> PercentageFormat:
    """Declared format if present, otherwise the detected one."""
    if expense.percentage_format is not None:
        return expense.percentage_format
    return detect_percentage_format(shares)


class PercentageSplitPolicy:
    """Caller-supplied percentages; amounts are derived from the total.

    Stored percentages are always normalised to a 0-1 fraction. Derived
    amounts are rounded per share and may drift from the total by a few
    cents; the service reconciles that drift afterwards.
    """

    kind = SplitKind.PERCENTAGE

    def validate_and_derive(self, expense: Expense, shares: list[Share]) -> list[Share]:
        _require_shares(shares)

        percentage_format = resolve_percentage_format(expense, shares)
        expected_total, tolerance = PERCENTAGE_RULES[percentage_format]

        for share in shares:
            percentage = share.percentage
            if percentage is None or percentage <= 0 or percentage > expected_total:
                raise InvalidPercentageRangeError(
                    share.participant_id, percentage, expected_total
                )

        total_percentage = sum_money(share.percentage for share in shares)
        if abs(total_percentage - expected_total) > tolerance:
            raise PercentageSumMismatchError(
                expected=expected_total, actual=total_percentage
            )

        derived = []
        for share in shares:
            if percentage_format is PercentageFormat.PERCENT:
                fraction = to_ratio(share.percentage / HUNDRED)
            else:
                fraction = share.percentage
            amount = to_money(expense.amount * fraction)
            _require_positive(share, amount)
            derived.append(
                share.model_copy(update={"share_amount": amount, "percentage": fraction})
            )

        return derived


SPLIT_POLICIES: dict[SplitKind, SplitPolicy] = {
    SplitKind.EQUAL: EqualSplitPolicy(),
    SplitKind.UNEQUAL: UnequalSplitPolicy(),
    SplitKind.PERCENTAGE: PercentageSplitPolicy(),
}


def parse_split_kind(value: SplitKind | str) -> SplitKind:
    """Parse a split kind tag case-insensitively."""
    try:
        return SplitKind(value)
    except ValueError:
        raise UnsupportedSplitKindError(value) from None


def get_split_policy(split_kind: SplitKind | str) -> SplitPolicy:
    """
    Get the policy for a split kind.

    Args:
        split_kind: Kind tag, as enum member or string

    Returns:
        The stateless policy instance

    Raises:
        UnsupportedSplitKindError: If no policy is registered for the kind
    """
    policy = SPLIT_POLICIES.get(parse_split_kind(split_kind))
    if policy is None:
        raise UnsupportedSplitKindError(split_kind)
    return policy
