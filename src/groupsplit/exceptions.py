"""Custom exceptions for GroupSplit."""

from decimal import Decimal


class GroupSplitError(Exception):
    """Base exception for all GroupSplit errors."""

    retryable = False


class ConfigurationError(GroupSplitError):
    """Raised when configuration is invalid or missing."""

    pass


# ============================================================================
# Validation errors (client input, never retryable)
# ============================================================================


class ValidationError(GroupSplitError):
    """Base class for rejected expense or share input."""

    pass


class EmptyShareSetError(ValidationError):
    """Raised when an expense has no shares to split across."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "At least one share is required")


class InvalidShareAmountError(ValidationError):
    """Raised when a share amount is missing, non-positive or badly scaled."""

    def __init__(self, participant_id: int | None, amount: Decimal | None):
        self.participant_id = participant_id
        self.amount = amount
        super().__init__(
            f"Share amount for participant {participant_id} must be a positive "
            f"value with at most 2 decimal places (got {amount})"
        )


class _MismatchError(ValidationError):
    """Shared shape for errors that compare an expected and an actual value."""

    def __init__(self, expected: Decimal, actual: Decimal, message: str):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class ShareSumMismatchError(_MismatchError):
    """Raised when explicit share amounts don't add up to the expense amount."""

    def __init__(self, expected: Decimal, actual: Decimal):
        super().__init__(
            expected,
            actual,
            f"Total share amount ({actual}) must equal expense amount ({expected})",
        )


class UnequalShareMismatchError(_MismatchError):
    """Raised when a pre-populated EQUAL share deviates from the equal amount."""

    def __init__(self, participant_id: int, expected: Decimal, actual: Decimal):
        self.participant_id = participant_id
        super().__init__(
            expected,
            actual,
            f"Each person should have an equal split of {expected}, "
            f"participant {participant_id} has {actual}",
        )


class InvalidPercentageRangeError(ValidationError):
    """Raised when a share percentage is missing or outside its format's range."""

    def __init__(
        self, participant_id: int, percentage: Decimal | None, upper_bound: Decimal
    ):
        self.participant_id = participant_id
        self.percentage = percentage
        self.upper_bound = upper_bound
        if percentage is None:
            message = f"Share percentage is required for participant {participant_id}"
        else:
            message = (
                f"Share percentage must be between 0 and {upper_bound} "
                f"(participant {participant_id} has {percentage})"
            )
        super().__init__(message)


class PercentageSumMismatchError(_MismatchError):
    """Raised when share percentages don't sum to 1 (or 100)."""

    def __init__(self, expected: Decimal, actual: Decimal):
        super().__init__(
            expected,
            actual,
            f"Share percentages must sum to {expected}, but sum to {actual}",
        )


class UnsupportedSplitKindError(ValidationError):
    """Raised when no split policy is registered for a split kind."""

    def __init__(self, split_kind: object):
        self.split_kind = split_kind
        super().__init__(f"Unsupported split kind: {split_kind}")


class PayerNotGroupMemberError(ValidationError):
    """Raised when the payer does not belong to the expense's group."""

    def __init__(self, payer_id: int, group_id: int):
        self.payer_id = payer_id
        self.group_id = group_id
        super().__init__(f"Payer {payer_id} is not a member of group {group_id}")


class ShareUserNotGroupMemberError(ValidationError):
    """Raised when a share references a participant outside the group."""

    def __init__(self, participant_id: int, group_id: int):
        self.participant_id = participant_id
        self.group_id = group_id
        super().__init__(
            f"Share user {participant_id} is not a member of group {group_id}"
        )


class DuplicateParticipantError(ValidationError):
    """Raised when the same participant holds more than one share."""

    def __init__(self, participant_id: int):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} appears in more than one share")


class RoundingError(_MismatchError):
    """Raised when the rounding remainder can't be absorbed by any share."""

    def __init__(self, expected: Decimal, actual: Decimal, residual: Decimal):
        self.residual = residual
        super().__init__(
            expected,
            actual,
            f"Cannot reconcile shares totalling {actual} to {expected}: "
            f"a remainder of {residual} would leave the absorbing share non-positive",
        )


# ============================================================================
# Not-found errors
# ============================================================================


class NotFoundError(GroupSplitError):
    """Base class for lookups that came back empty."""

    entity = "Entity"

    def __init__(self, entity_id: int, message: str | None = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} not found with id: {entity_id}")


class GroupNotFoundError(NotFoundError):
    """Raised when a group does not exist."""

    entity = "Group"


class PayerNotFoundError(NotFoundError):
    """Raised when the payer of an expense can't be resolved."""

    entity = "Payer"


class UserNotFoundError(NotFoundError):
    """Raised when a participant id can't be resolved."""

    entity = "User"


class ShareNotFoundError(NotFoundError):
    """Raised when a share does not exist."""

    entity = "Share"


class ExpenseNotFoundError(NotFoundError):
    """Raised when an expense does not exist."""

    entity = "Expense"


# ============================================================================
# Persistence errors (retryable)
# ============================================================================


class PersistenceError(GroupSplitError):
    """Base class for storage failures."""

    retryable = True


class PersistenceFailureError(PersistenceError):
    """Raised when the store fails to read or write; the caller may retry."""

    pass
