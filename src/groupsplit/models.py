"""Pydantic domain models for GroupSplit."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .money import sum_money, to_money


class SplitKind(StrEnum):
    """How an expense is divided between its shares."""

    EQUAL = "EQUAL"
    UNEQUAL = "UNEQUAL"
    PERCENTAGE = "PERCENTAGE"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class PercentageFormat(StrEnum):
    """Scale that PERCENTAGE share values are expressed in."""

    FRACTION = "FRACTION"  # 0-1
    PERCENT = "PERCENT"  # 0-100

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class GroupSplitModel(BaseModel):
    """Base model: camelCase aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Membership Models
# ============================================================================


class Participant(GroupSplitModel):
    """A person who can pay for or owe part of an expense."""

    id: int | None = None
    name: str
    email: str


class Group(GroupSplitModel):
    """A group of participants sharing expenses."""

    id: int | None = None
    name: str
    description: str | None = None
    member_ids: set[int] = Field(default_factory=set)


# ============================================================================
# Expense Models
# ============================================================================


class Share(GroupSplitModel):
    """One participant's obligation within an expense."""

    id: int | None = None
    expense_id: int | None = None  # back-reference, set on persist
    participant_id: int
    share_amount: Decimal | None = None
    percentage: Decimal | None = None  # fraction in [0, 1] once derived
    settled: bool = False


class Expense(GroupSplitModel):
    """A group expense and the shares it is split into.

    ``split_kind`` is frozen: once shares have been computed for a kind the
    expense can't be re-labelled. Updates go through ``model_copy``.
    """

    id: int | None = None
    description: str
    # 13 integer digits keeps share math well inside the 28-digit context
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    split_kind: SplitKind = Field(frozen=True)
    group_id: int
    payer_id: int
    created_at: datetime | None = None
    date: datetime | None = None  # when the expense happened
    percentage_format: PercentageFormat | None = None
    shares: list[Share] = Field(default_factory=list)

    @field_validator("amount")
    @classmethod
    def _quantize_amount(cls, value: Decimal) -> Decimal:
        return to_money(value)

    def total_shares(self) -> Decimal:
        """Sum of all share amounts (missing amounts count as zero)."""
        return sum_money(share.share_amount or Decimal("0") for share in self.shares)

    def get_share(self, share_id: int) -> Share:
        """Get a share of this expense by ID."""
        for share in self.shares:
            if share.id == share_id:
                return share
        raise ValueError(f"Share {share_id} not in expense {self.id}")
