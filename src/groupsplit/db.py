"""SQLite database operations for GroupSplit."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

from .exceptions import (
    GroupNotFoundError,
    PersistenceFailureError,
    UserNotFoundError,
)
from .models import Expense, Group, Participant, PercentageFormat, Share, SplitKind


class Database:
    """SQLite database manager.

    Implements the membership resolver, identity resolver and expense store
    contracts. Money is stored as decimal TEXT so it round-trips exactly.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._transaction_depth = 0
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS participants (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS group_members (
                group_id INTEGER NOT NULL
                    REFERENCES expense_groups(id) ON DELETE CASCADE,
                participant_id INTEGER NOT NULL
                    REFERENCES participants(id) ON DELETE CASCADE,
                PRIMARY KEY (group_id, participant_id)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                description TEXT NOT NULL,
                amount TEXT NOT NULL,
                split_kind TEXT NOT NULL,
                group_id INTEGER NOT NULL
                    REFERENCES expense_groups(id) ON DELETE CASCADE,
                payer_id INTEGER NOT NULL REFERENCES participants(id),
                percentage_format TEXT,
                created_at TIMESTAMP NOT NULL,
                date TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS shares (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                expense_id INTEGER NOT NULL
                    REFERENCES expenses(id) ON DELETE CASCADE,
                participant_id INTEGER NOT NULL REFERENCES participants(id),
                share_amount TEXT NOT NULL,
                percentage TEXT,
                settled INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_shares_participant "
            "ON shares (participant_id, settled)"
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Transactions
    # ========================================================================

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceFailureError(f"Database operation failed: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group writes into one atomic unit.

        Commits when the outermost block exits cleanly and rolls back on any
        exception. Nested blocks join the enclosing transaction.
        """
        outermost = self._transaction_depth == 0
        self._transaction_depth += 1
        try:
            yield
            if outermost:
                try:
                    self.conn.commit()
                except sqlite3.Error as e:
                    raise PersistenceFailureError(f"Commit failed: {e}") from e
        except Exception:
            if outermost:
                self.conn.rollback()
            raise
        finally:
            self._transaction_depth -= 1

    # ========================================================================
    # Participant and group operations
    # ========================================================================

    def add_participant(self, participant: Participant) -> Participant:
        """Register a participant."""
        with self.transaction():
            cursor = self._execute(
                "INSERT INTO participants (name, email) VALUES (?, ?)",
                (participant.name, participant.email),
            )
        return participant.model_copy(update={"id": cursor.lastrowid})

    def resolve(self, participant_id: int) -> Participant:
        """Get a participant by ID."""
        row = self._execute(
            "SELECT id, name, email FROM participants WHERE id = ?",
            (participant_id,),
        ).fetchone()
        if not row:
            raise UserNotFoundError(participant_id)
        return Participant(id=row["id"], name=row["name"], email=row["email"])

    def create_group(self, group: Group) -> Group:
        """Create a group together with its initial members."""
        with self.transaction():
            cursor = self._execute(
                "INSERT INTO expense_groups (name, description) VALUES (?, ?)",
                (group.name, group.description),
            )
            group_id = cursor.lastrowid
            for participant_id in sorted(group.member_ids):
                self.resolve(participant_id)
                self._execute(
                    "INSERT INTO group_members (group_id, participant_id) VALUES (?, ?)",
                    (group_id, participant_id),
                )
        return group.model_copy(update={"id": group_id})

    def get_group(self, group_id: int) -> Group | None:
        """Get a group and its member ids."""
        row = self._execute(
            "SELECT id, name, description FROM expense_groups WHERE id = ?",
            (group_id,),
        ).fetchone()
        if not row:
            return None

        members = self._execute(
            "SELECT participant_id FROM group_members WHERE group_id = ?",
            (group_id,),
        ).fetchall()
        return Group(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            member_ids={member["participant_id"] for member in members},
        )

    def members_of(self, group_id: int) -> set[int]:
        """Get member participant ids of a group."""
        group = self.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group.member_ids

    def add_group_member(self, group_id: int, participant_id: int) -> bool:
        """Add a participant to a group. Returns False if already a member."""
        if self.get_group(group_id) is None:
            raise GroupNotFoundError(group_id)
        self.resolve(participant_id)

        with self.transaction():
            cursor = self._execute(
                "INSERT OR IGNORE INTO group_members (group_id, participant_id) "
                "VALUES (?, ?)",
                (group_id, participant_id),
            )
        return cursor.rowcount > 0

    def remove_group_member(self, group_id: int, participant_id: int) -> bool:
        """Remove a participant from a group. Returns False if not a member."""
        with self.transaction():
            cursor = self._execute(
                "DELETE FROM group_members WHERE group_id = ? AND participant_id = ?",
                (group_id, participant_id),
            )
        return cursor.rowcount > 0

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(self, expense: Expense) -> Expense:
        """
        Insert or update an expense and its shares.

        Every share must already carry the expense's id as its back-reference,
        so a new expense is saved header-first (without shares) and then saved
        again with its shares attached. Shares missing from ``expense.shares``
        are removed.
        """
        with self.transaction():
            if expense.id is None:
                cursor = self._execute(
                    """
                    INSERT INTO expenses (
                        description, amount, split_kind, group_id, payer_id,
                        percentage_format, created_at, date
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        expense.description,
                        str(expense.amount),
                        expense.split_kind.value,
                        expense.group_id,
                        expense.payer_id,
                        _enum_value(expense.percentage_format),
                        _timestamp(expense.created_at),
                        _timestamp(expense.date or expense.created_at),
                    ),
                )
                expense_id = cursor.lastrowid
                if expense_id is None:
                    raise PersistenceFailureError("Failed to insert expense record")
            else:
                expense_id = expense.id
                self._execute(
                    """
                    UPDATE expenses
                    SET description = ?, amount = ?, percentage_format = ?, date = ?
                    WHERE id = ?
                    """,
                    (
                        expense.description,
                        str(expense.amount),
                        _enum_value(expense.percentage_format),
                        _timestamp(expense.date or expense.created_at),
                        expense_id,
                    ),
                )

            saved_shares = [self._save_share(expense_id, share) for share in expense.shares]

            kept_ids = [share.id for share in saved_shares]
            placeholders = ",".join("?" for _ in kept_ids)
            self._execute(
                f"DELETE FROM shares WHERE expense_id = ? AND id NOT IN ({placeholders})",
                (expense_id, *kept_ids),
            )

        return expense.model_copy(update={"id": expense_id, "shares": saved_shares})

    def _save_share(self, expense_id: int, share: Share) -> Share:
        if share.expense_id != expense_id:
            raise ValueError(
                f"Share for participant {share.participant_id} references expense "
                f"{share.expense_id}, expected {expense_id}"
            )
        if share.share_amount is None:
            raise ValueError(
                f"Share for participant {share.participant_id} has no amount"
            )

        if share.id is None:
            cursor = self._execute(
                """
                INSERT INTO shares (
                    expense_id, participant_id, share_amount, percentage, settled
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    expense_id,
                    share.participant_id,
                    str(share.share_amount),
                    _decimal_text(share.percentage),
                    int(share.settled),
                ),
            )
            return share.model_copy(update={"id": cursor.lastrowid})

        self._execute(
            """
            UPDATE shares
            SET share_amount = ?, percentage = ?, settled = ?
            WHERE id = ? AND expense_id = ?
            """,
            (
                str(share.share_amount),
                _decimal_text(share.percentage),
                int(share.settled),
                share.id,
                expense_id,
            ),
        )
        return share

    def get_expense(self, expense_id: int) -> Expense | None:
        """Get an expense with its shares in insertion order."""
        row = self._execute(
            "SELECT * FROM expenses WHERE id = ?", (expense_id,)
        ).fetchone()
        if not row:
            return None
        return self._expense_from_row(row)

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense; its shares cascade."""
        with self.transaction():
            cursor = self._execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        return cursor.rowcount > 0

    def get_group_expenses(self, group_id: int) -> list[Expense]:
        """Get all expenses of a group, newest first."""
        rows = self._execute(
            "SELECT * FROM expenses WHERE group_id = ? ORDER BY created_at DESC, id DESC",
            (group_id,),
        ).fetchall()
        return [self._expense_from_row(row) for row in rows]

    def get_expenses_paid_by(self, participant_id: int) -> list[Expense]:
        """Get all expenses paid by a participant, newest first."""
        rows = self._execute(
            "SELECT * FROM expenses WHERE payer_id = ? ORDER BY created_at DESC, id DESC",
            (participant_id,),
        ).fetchall()
        return [self._expense_from_row(row) for row in rows]

    # ========================================================================
    # Share operations
    # ========================================================================

    def find_share(self, share_id: int) -> Share | None:
        """Get a share by ID."""
        row = self._execute("SELECT * FROM shares WHERE id = ?", (share_id,)).fetchone()
        return _share_from_row(row) if row else None

    def mark_share_settled(self, share_id: int) -> bool:
        """Set one share's settled flag. Returns False if nothing changed."""
        with self.transaction():
            cursor = self._execute(
                "UPDATE shares SET settled = 1 WHERE id = ? AND settled = 0",
                (share_id,),
            )
        return cursor.rowcount > 0

    def get_participant_shares(
        self,
        participant_id: int,
        unsettled_only: bool = False,
        group_id: int | None = None,
    ) -> list[Share]:
        """
        Get the shares a participant holds.

        Args:
            participant_id: Participant to look up
            unsettled_only: Only return shares not yet settled
            group_id: Restrict to expenses of this group

        Returns:
            Matching shares ordered by id
        """
        sql = (
            "SELECT shares.* FROM shares "
            "JOIN expenses ON expenses.id = shares.expense_id "
            "WHERE shares.participant_id = ?"
        )
        params: list = [participant_id]
        if unsettled_only:
            sql += " AND shares.settled = 0"
        if group_id is not None:
            sql += " AND expenses.group_id = ?"
            params.append(group_id)
        sql += " ORDER BY shares.id"

        return [_share_from_row(row) for row in self._execute(sql, tuple(params)).fetchall()]

    def _expense_from_row(self, row: sqlite3.Row) -> Expense:
        share_rows = self._execute(
            "SELECT * FROM shares WHERE expense_id = ? ORDER BY id", (row["id"],)
        ).fetchall()
        return Expense(
            id=row["id"],
            description=row["description"],
            amount=Decimal(row["amount"]),
            split_kind=SplitKind(row["split_kind"]),
            group_id=row["group_id"],
            payer_id=row["payer_id"],
            percentage_format=(
                PercentageFormat(row["percentage_format"])
                if row["percentage_format"]
                else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            date=datetime.fromisoformat(row["date"]),
            shares=[_share_from_row(share_row) for share_row in share_rows],
        )


def _share_from_row(row: sqlite3.Row) -> Share:
    return Share(
        id=row["id"],
        expense_id=row["expense_id"],
        participant_id=row["participant_id"],
        share_amount=Decimal(row["share_amount"]),
        percentage=Decimal(row["percentage"]) if row["percentage"] is not None else None,
        settled=bool(row["settled"]),
    )


def _timestamp(value: datetime | None) -> str:
    return (value or datetime.now(UTC)).isoformat()


def _enum_value(value: PercentageFormat | None) -> str | None:
    return value.value if value is not None else None


def _decimal_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
