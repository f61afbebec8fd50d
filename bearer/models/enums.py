"""
Enumerations shared by the ORM models and the lifecycle services.
"""

from enum import Enum


class AuditEvent(str, Enum):
    """Audit log event kind."""

    CREATED = "created"
    AUTHENTICATED = "authenticated"
    REVOKED = "revoked"
    ROTATED = "rotated"
    DERIVED = "derived"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"
    IP_BLOCKED = "ip_blocked"
    DOMAIN_BLOCKED = "domain_blocked"
    EXPIRED = "expired"


class RevocationMode(str, Enum):
    """Built-in revocation strategy names."""

    NONE = "none"
    CASCADE = "cascade"
    PARTIAL = "partial"
    TIMED = "timed"
    CASCADE_DESCENDANTS = "cascade_descendants"


class RotationMode(str, Enum):
    """Built-in rotation strategy names."""

    IMMEDIATE = "immediate"
    GRACE_PERIOD = "grace_period"
    DUAL_VALID = "dual_valid"
