"""Rounding-remainder reconciliation for computed share sets."""

import logging
from decimal import Decimal

from .exceptions import EmptyShareSetError, RoundingError
from .models import Share
from .money import ZERO, sum_money, to_money

logger = logging.getLogger(__name__)


def compute_residual(shares: list[Share], total: Decimal) -> Decimal:
    """Return ``total - sum(share amounts)``; missing amounts count as zero."""
    allocated = sum_money(share.share_amount or ZERO for share in shares)
    return to_money(total) - allocated


def reconcile_remainder(shares: list[Share], total: Decimal) -> list[Share]:
    """
    Make share amounts sum exactly to ``total``.

    Steps:
    1. Sum the computed share amounts
    2. Compute residual = total - sum
    3. If the residual is non-zero, the last share (supply order) absorbs it,
       or the largest share when the last one would drop to zero or below

    The input list is not modified; shares are copied where they change.

    Args:
        shares: Shares with derived ``share_amount`` values
        total: Expense amount the shares must add up to

    Returns:
        New list of shares summing exactly to ``total``

    Raises:
        EmptyShareSetError: If there are no shares
        RoundingError: If neither the last nor the largest share can absorb
            the residual and stay positive
    """
    if not shares:
        raise EmptyShareSetError()

    residual = compute_residual(shares, total)
    if residual == 0:
        return list(shares)

    index = len(shares) - 1
    adjusted = (shares[index].share_amount or ZERO) + residual
    if adjusted <= 0:
        # Last share can't take it; fall back to the largest (first on ties)
        index = max(
            range(len(shares)), key=lambda i: (shares[i].share_amount or ZERO, -i)
        )
        adjusted = (shares[index].share_amount or ZERO) + residual
        if adjusted <= 0:
            raise RoundingError(
                expected=to_money(total),
                actual=to_money(total) - residual,
                residual=residual,
            )

    target = shares[index]
    logger.info(
        f"Applied rounding adjustment: {residual} "
        f"to participant {target.participant_id}"
    )

    reconciled = list(shares)
    reconciled[index] = target.model_copy(update={"share_amount": adjusted})

    final_total = sum_money(share.share_amount for share in reconciled)
    assert final_total == to_money(total), "Adjustment failed"

    return reconciled
