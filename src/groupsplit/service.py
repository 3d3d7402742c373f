"""Service layer that composes membership, split policies and persistence.

``ExpenseService.create_expense`` runs the five orchestration steps: resolve
the group, resolve the payer, resolve share participants, apply the split
policy (with remainder reconciliation), then persist header and shares in one
transaction.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from .collaborators import ExpenseStore, IdentityResolver, MembershipResolver
from .config import Settings
from .db import Database
from .exceptions import (
    DuplicateParticipantError,
    ExpenseNotFoundError,
    GroupSplitError,
    PayerNotFoundError,
    PayerNotGroupMemberError,
    PersistenceFailureError,
    ShareNotFoundError,
    ShareUserNotGroupMemberError,
    UserNotFoundError,
)
from .hooks import EngineHooks, EngineStep, LoggingHooks
from .models import Expense, Share
from .policies import get_split_policy
from .reconciler import reconcile_remainder
from .settlement import SettlementTracker

logger = logging.getLogger(__name__)


class ExpenseService:
    """Creates, reads, settles and deletes group expenses."""

    def __init__(
        self,
        store: ExpenseStore,
        membership: MembershipResolver,
        identity: IdentityResolver,
        hooks: EngineHooks | None = None,
        reconcile_remainder: bool = True,
    ):
        """
        Initialize the expense service.

        Args:
            store: Persistence for expenses and shares
            membership: Group membership lookups
            identity: Participant lookups
            hooks: Step observer, defaults to logging
            reconcile_remainder: Absorb rounding drift into the last share
        """
        self.store = store
        self.membership = membership
        self.identity = identity
        self.hooks = hooks or LoggingHooks()
        self.reconcile_remainder = reconcile_remainder
        self.settlements = SettlementTracker(store)

    @classmethod
    def from_database(
        cls, database: Database, settings: Settings | None = None
    ) -> "ExpenseService":
        """Build a service whose collaborators are all the SQLite database."""
        return cls(
            store=database,
            membership=database,
            identity=database,
            reconcile_remainder=settings.reconcile_remainder if settings else True,
        )

    @contextmanager
    def _step(self, step: EngineStep, **fields: Any) -> Iterator[dict[str, Any]]:
        """Report one orchestration step to the hooks; yields extra fields."""
        self.hooks.step_started(step, **fields)
        details = dict(fields)
        try:
            yield details
        except Exception as e:
            self.hooks.step_failed(step, e, **details)
            raise
        self.hooks.step_finished(step, **details)

    def create_expense(self, expense: Expense) -> Expense:
        """
        Validate, split and persist a new expense.

        Args:
            expense: The expense with its requested shares. Share amounts or
                percentages are read according to ``expense.split_kind``.

        Returns:
            The persisted expense with ids and finalized shares

        Raises:
            ValidationError: If the payer, participants or shares are invalid
            NotFoundError: If the group, payer or a participant does not exist
            PersistenceFailureError: If the store fails; nothing is committed
        """
        group_id = expense.group_id

        with self._step(EngineStep.RESOLVE_GROUP, group_id=group_id) as details:
            members = self.membership.members_of(group_id)
            details["member_count"] = len(members)

        with self._step(EngineStep.RESOLVE_PAYER, payer_id=expense.payer_id):
            try:
                self.identity.resolve(expense.payer_id)
            except UserNotFoundError as e:
                raise PayerNotFoundError(expense.payer_id) from e
            if expense.payer_id not in members:
                raise PayerNotGroupMemberError(expense.payer_id, group_id)

        with self._step(
            EngineStep.RESOLVE_PARTICIPANTS, share_count=len(expense.shares)
        ):
            seen: set[int] = set()
            for share in expense.shares:
                self.identity.resolve(share.participant_id)
                if share.participant_id not in members:
                    raise ShareUserNotGroupMemberError(share.participant_id, group_id)
                if share.participant_id in seen:
                    raise DuplicateParticipantError(share.participant_id)
                seen.add(share.participant_id)

        with self._step(
            EngineStep.APPLY_POLICY, split_kind=expense.split_kind.value
        ) as details:
            policy = get_split_policy(expense.split_kind)
            shares = policy.validate_and_derive(expense, expense.shares)
            if self.reconcile_remainder:
                shares = reconcile_remainder(shares, expense.amount)
            details["amounts"] = [str(share.share_amount) for share in shares]

        with self._step(EngineStep.PERSIST, group_id=group_id) as details:
            saved = self._persist(expense, shares)
            details["expense_id"] = saved.id

        logger.info(
            f"Created expense: {saved.id} in group: {group_id} "
            f"by user: {saved.payer_id}"
        )
        return saved

    def _persist(self, expense: Expense, shares: list[Share]) -> Expense:
        """Save the header to get an id, then save again with shares attached."""
        now = datetime.now(UTC)
        header = expense.model_copy(
            update={
                "id": None,
                "created_at": now,
                "date": expense.date or now,
                "shares": [],
            }
        )

        try:
            with self.store.transaction():
                saved = self.store.save_expense(header)
                attached = [
                    share.model_copy(
                        update={"id": None, "expense_id": saved.id, "settled": False}
                    )
                    for share in shares
                ]
                return self.store.save_expense(
                    saved.model_copy(update={"shares": attached})
                )
        except GroupSplitError:
            raise
        except Exception as e:
            raise PersistenceFailureError(f"Failed to persist expense: {e}") from e

    def get_expense(self, expense_id: int) -> Expense:
        """Get an expense by ID."""
        expense = self.store.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def delete_expense(self, expense_id: int) -> None:
        """Delete an expense together with its shares."""
        with self.store.transaction():
            if not self.store.delete_expense(expense_id):
                raise ExpenseNotFoundError(expense_id)
        logger.info(f"Deleted expense: {expense_id}")

    def get_group_expenses(self, group_id: int) -> list[Expense]:
        """Get a group's expenses, newest first."""
        self.membership.members_of(group_id)
        return self.store.get_group_expenses(group_id)

    def get_user_expenses(self, user_id: int) -> list[Expense]:
        """Get the expenses a participant paid for."""
        return self.store.get_expenses_paid_by(user_id)

    def get_share(self, share_id: int) -> Share:
        """Get a share by ID."""
        share = self.store.find_share(share_id)
        if share is None:
            raise ShareNotFoundError(share_id)
        return share

    def get_user_shares(self, user_id: int) -> list[Share]:
        """Get every share a participant holds."""
        return self.store.get_participant_shares(user_id)

    def get_user_unsettled_shares(self, user_id: int) -> list[Share]:
        """Get the shares a participant still owes."""
        return self.store.get_participant_shares(user_id, unsettled_only=True)

    def get_group_user_unsettled_shares(self, group_id: int, user_id: int) -> list[Share]:
        """Get the shares a participant still owes within one group."""
        self.membership.members_of(group_id)
        return self.store.get_participant_shares(
            user_id, unsettled_only=True, group_id=group_id
        )

    def settle_share(self, share_id: int) -> Share:
        """Mark a share as settled (idempotent)."""
        return self.settlements.settle(share_id)
