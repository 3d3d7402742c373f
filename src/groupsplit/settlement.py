"""Settlement tracking for expense shares."""

import logging

from .collaborators import ExpenseStore
from .exceptions import ShareNotFoundError
from .models import Share

logger = logging.getLogger(__name__)


class SettlementTracker:
    """Marks shares as paid.

    Settling is idempotent: a share that is already settled is returned as-is
    without a write. There is no way to unsettle a share.
    """

    def __init__(self, store: ExpenseStore):
        """Initialize the tracker."""
        self.store = store

    def settle(self, share_id: int) -> Share:
        """
        Mark a share as settled.

        Only the target share's row is written, so settling two shares of the
        same expense concurrently keeps both flags.

        Args:
            share_id: The share to settle

        Returns:
            The settled share

        Raises:
            ShareNotFoundError: If the share does not exist
        """
        with self.store.transaction():
            share = self.store.find_share(share_id)
            if share is None:
                raise ShareNotFoundError(share_id)

            if share.settled:
                logger.info(f"Share {share_id} already settled, nothing to do")
                return share

            self.store.mark_share_settled(share_id)

        logger.info(f"Settled share: {share_id} for expense: {share.expense_id}")
        return share.model_copy(update={"settled": True})
