"""GroupSplit - Split shared group expenses and track who has settled up."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    Expense,
    Group,
    Participant,
    PercentageFormat,
    Share,
    SplitKind,
)
from .policies import get_split_policy
from .reconciler import reconcile_remainder
from .service import ExpenseService
from .settlement import SettlementTracker

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Expense",
    "Group",
    "Participant",
    "PercentageFormat",
    "Share",
    "SplitKind",
    "get_split_policy",
    "reconcile_remainder",
    "ExpenseService",
    "SettlementTracker",
]
