"""Contracts for the services the expense engine depends on.

``groupsplit.db.Database`` implements all three; tests and embedding
applications can supply their own.
"""

from contextlib import AbstractContextManager
from typing import Protocol

from .models import Expense, Participant, Share


class MembershipResolver(Protocol):
    """Looks up who belongs to a group."""

    def members_of(self, group_id: int) -> set[int]:
        """Return member participant ids; raise GroupNotFoundError if absent."""
        ...


class IdentityResolver(Protocol):
    """Looks up participant records."""

    def resolve(self, participant_id: int) -> Participant:
        """Return the participant; raise UserNotFoundError if absent."""
        ...


class ExpenseStore(Protocol):
    """Durable storage for expenses and their shares."""

    def transaction(self) -> AbstractContextManager[None]:
        """Scope writes so they commit together or roll back together."""
        ...

    def save_expense(self, expense: Expense) -> Expense:
        """Insert or update an expense (and its shares), returning it with ids."""
        ...

    def get_expense(self, expense_id: int) -> Expense | None: ...

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense and its shares; False if it did not exist."""
        ...

    def find_share(self, share_id: int) -> Share | None: ...

    def mark_share_settled(self, share_id: int) -> bool:
        """Flag a single share as settled without touching its siblings."""
        ...

    # Read-side queries

    def get_group_expenses(self, group_id: int) -> list[Expense]: ...

    def get_expenses_paid_by(self, participant_id: int) -> list[Expense]: ...

    def get_participant_shares(
        self,
        participant_id: int,
        unsettled_only: bool = False,
        group_id: int | None = None,
    ) -> list[Share]: ...
