"""
Utility modules for the ZoneAlert backend.
"""

from zonealert.utils.validation import (
    validate_doc_id,
    require_doc_id,
    validate_identification_tag,
    parse_iso_date,
)

__all__ = [
    "validate_doc_id",
    "require_doc_id",
    "validate_identification_tag",
    "parse_iso_date",
]
