# storefront/core/logging.py
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

audit_logger = logging.getLogger("storefront.audit")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(level.upper())
    return root


def hash_subject(subject: Optional[str]) -> Optional[str]:
    """One-way hash of an email or phone number so audit lines carry no contact data"""
    if not subject:
        return None
    return hashlib.sha256(subject.strip().lower().encode()).hexdigest()


def audit_log(action: str, subject: Optional[str] = None, user_id: Optional[str] = None,
              success: bool = True, **details: Any) -> None:
    """Production audit logging"""
    audit_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "subject_hash": hash_subject(subject),
        "user_id": user_id,
        "success": success,
        "details": details,
    }
    audit_logger.info(f"AUDIT: {json.dumps(audit_entry, default=str)}")
