from dataclasses import dataclass
from typing import Optional
import logging

from ..ports.user_repo import UserRepository
from ..ports.audit_logger import AuditLogger
from ...exceptions import NotFound, QuotaExceeded

logger = logging.getLogger(__name__)


@dataclass
class QuotaCheck:
    allowed: bool
    used: int
    limit: int
    requested: int
    reason: Optional[str] = None

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


@dataclass
class StorageUsage:
    used: int
    limit: int

    @property
    def available(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def percentage(self) -> float:
        if self.limit <= 0:
            return 100.0
        return round(self.used / self.limit * 100, 2)


@dataclass
class QuotaAccountant:
    """Reads and adjusts per-user storage usage.

    ``apply_delta`` is the only code path that writes ``storage_used``. The
    check in ``check_fits`` is not linearizable with concurrent uploads from
    the same user; two racing batches may overshoot the quota by at most one
    batch.
    """
    user_repo: UserRepository
    audit: Optional[AuditLogger] = None

    def check_fits(self, user_id: str, additional_bytes: int) -> QuotaCheck:
        if additional_bytes < 0:
            raise ValueError("additional_bytes must be non-negative")
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        if user.storage_used + additional_bytes > user.max_storage:
            return QuotaCheck(False, user.storage_used, user.max_storage, additional_bytes, "Insufficient storage space")
        return QuotaCheck(True, user.storage_used, user.max_storage, additional_bytes)

    def ensure_fits(self, user_id: str, additional_bytes: int) -> QuotaCheck:
        check = self.check_fits(user_id, additional_bytes)
        if not check.allowed:
            raise QuotaExceeded(check.reason, used=check.used, limit=check.limit, requested=additional_bytes)
        return check

    def apply_delta(self, user_id: str, delta_bytes: int) -> int:
        update = self.user_repo.add_storage_used(user_id, delta_bytes)
        if update is None:
            raise NotFound("User not found")
        if update.clamped:
            logger.warning(f"storage_used for user {user_id} would go negative applying {delta_bytes}; clamped to 0")
            if self.audit:
                self.audit.log("storage_clamped", user_id=user_id, success=False, details={"delta": delta_bytes})
        return update.value

    def usage(self, user_id: str) -> StorageUsage:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        return StorageUsage(used=user.storage_used, limit=user.max_storage)
