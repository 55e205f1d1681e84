"""
Input Validation Utilities
===========================

Validation helpers for path ids, livestock tags and query-string dates.

Author: ZoneAlert Team
"""

import re
from datetime import datetime, timezone
from typing import Optional

from zonealert.errors import ValidationError


# Firestore ids: no slashes, not "." or "..", at most 1500 bytes.
# Ours are generated, so keep to a safe alphabet.
_DOC_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,128}$')
_TAG_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9 _./-]{0,49}$')


def validate_doc_id(doc_id: str) -> bool:
    """
    Validate a document id taken from a URL path.

    Args:
        doc_id: Id string (e.g. "8Hk2aV0pLq")

    Returns:
        True if valid, False otherwise
    """
    if not doc_id:
        return False
    return bool(_DOC_ID_PATTERN.match(doc_id))


def require_doc_id(doc_id: str, label: str = "id") -> str:
    """Return doc_id unchanged or raise ValidationError."""
    if not validate_doc_id(doc_id):
        raise ValidationError(
            f"Invalid {label}",
            errors=[{"field": label, "message": "Must be 1-128 letters, digits, '_' or '-'"}],
        )
    return doc_id


def validate_identification_tag(tag: str) -> bool:
    """
    Validate an ear tag / RFID label (e.g. "GT-001").

    Starts with a letter or digit, at most 50 characters.
    """
    if not tag:
        return False
    return bool(_TAG_PATTERN.match(tag.strip()))


def parse_iso_date(value: Optional[str], field_name: str = "date") -> Optional[datetime]:
    """
    Parse an ISO 8601 date or datetime from a query string.

    Naive values are taken as UTC.

    Raises:
        ValidationError: if the value is not ISO 8601
    """
    if value is None or value == "":
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"Invalid {field_name}",
            errors=[{"field": field_name, "message": "Must be an ISO 8601 date"}],
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
