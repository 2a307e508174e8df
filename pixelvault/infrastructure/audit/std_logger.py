import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ...application.ports.audit_logger import AuditLogger


class StdAuditLogger(AuditLogger):
    """Writes audit events as ``AUDIT: {json}`` lines on the ``pixelvault.audit`` logger.

    Failed events are logged at WARNING so they surface without enabling INFO.
    """

    def __init__(self, logger_name: str = "pixelvault.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, user_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        event = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "action": action,
            "user_id": user_id,
            "success": success,
            "details": details or {},
        }
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, "AUDIT: %s", json.dumps(event, default=str, sort_keys=True))
