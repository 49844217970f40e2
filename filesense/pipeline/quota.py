from dataclasses import dataclass

from filesense.pipeline.exceptions import BatchValidationError
from filesense.pipeline.models import UserRole

DEFAULT_GUEST_FILE_LIMIT = 5


@dataclass(frozen=True)
class GuestOwner:
    """Unauthenticated caller identified by its guest/connection id."""

    guest_id: str
    current_guest_count: int = 0


@dataclass(frozen=True)
class RegisteredOwner:
    """Authenticated caller with a monthly allowance."""

    user_id: str
    monthly_limit: int
    files_processed_this_month: int
    role: UserRole = UserRole.FREE


OwnerContext = GuestOwner | RegisteredOwner


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    remaining: int | None

    @property
    def is_unlimited(self) -> bool:
        return self.remaining is None


class QuotaGate:
    """Decides whether an owner may submit a batch of files. Pure; never persists."""

    def __init__(self, guest_file_limit: int = DEFAULT_GUEST_FILE_LIMIT) -> None:
        self._guest_file_limit = guest_file_limit

    @property
    def guest_file_limit(self) -> int:
        return self._guest_file_limit

    def can_process(self, owner: OwnerContext, file_count: int) -> QuotaDecision:
        """Check `file_count` new files against the owner's quota.

        Raises:
            BatchValidationError: if file_count is not positive.
        """
        if file_count <= 0:
            raise BatchValidationError(f"file_count must be positive, got {file_count}")

        if isinstance(owner, GuestOwner):
            remaining = self._guest_file_limit - owner.current_guest_count
            allowed = owner.current_guest_count + file_count <= self._guest_file_limit
            return QuotaDecision(allowed=allowed, remaining=remaining)

        if owner.role == UserRole.PREMIUM:
            return QuotaDecision(allowed=True, remaining=None)

        remaining = owner.monthly_limit - owner.files_processed_this_month
        return QuotaDecision(allowed=remaining >= file_count, remaining=remaining)
