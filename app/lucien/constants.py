"""
Central constants for the Lucien portal.
"""
from __future__ import annotations

ROLE_CLIENT = "CLIENT"
ROLE_OPERATOR = "OPERATOR"
VALID_ROLES = frozenset({ROLE_CLIENT, ROLE_OPERATOR})

ENGAGEMENT_ALL = "ALL"

# Invite payloads may reference a package tier by index instead of a project id
TIER_ENGAGEMENT_IDS = {
    0: "TIER-DIAGNOSIS",
    1: "TIER-ARCHITECT",
    2: "TIER-SOVEREIGN",
}
RESERVED_ENGAGEMENT_IDS = frozenset({ENGAGEMENT_ALL, *TIER_ENGAGEMENT_IDS.values()})

USER_STATUSES = ("active", "invited", "disabled")
INVITE_TYPES = ("magic", "temp_password")
DEFAULT_INVITE_TTL_HOURS = 72
MAX_INVITE_TTL_HOURS = 24 * 365 * 10

DEV_LOGIN_EMAIL = "adam@lucien.technology"
DEV_LOGIN_ENGAGEMENTS = ("PRJ-001",)

REQUEST_ID_PATTERN = r"^REQ-[0-9A-Z-]+$"
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

LOGIN_MAX_BYTES = 10 * 1024
INVITE_MAX_BYTES = 20 * 1024
INVITE_ACCEPT_MAX_BYTES = 4 * 1024
HANDSHAKE_MAX_BYTES = 16 * 1024
MESSAGE_MAX_BYTES = 50 * 1024
