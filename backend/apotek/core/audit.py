"""
Audit logging for stock-affecting operations.

Every committed change to inventory or transactions is written to the
"audit" logger as one JSON object, so it can be shipped to central logging
separately from application logs.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Separate logger for audit events
audit_logger = logging.getLogger("audit")


class AuditLog:
    """Central audit logging for business events."""

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "delete", "bulk_upsert", "bulk_delete"
        resource_type: str,  # "inventory", "transaction"
        resource_id: Optional[str],
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log a committed business action.

        Usage:
            AuditLog.log_action("create", "transaction", "a1b2c3", changes={"lines": 2})
            AuditLog.log_action("bulk_upsert", "inventory", None, changes={"inserted": 4, "updated": 1})
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": f"{resource_type}.{action}",
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        path: str,
        ip_address: str,
        reason: str,
    ):
        """
        Log denied access attempts (missing or wrong bearer token).

        Usage:
            AuditLog.log_access_denied("/transactions", "10.0.0.7", "Invalid token")
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "path": path,
            "ip_address": ip_address,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))
