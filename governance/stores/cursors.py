"""
Keyset cursors for the SQL stores.

Time-ordered tables page on (created_at, id), so rows sharing a timestamp
are neither skipped nor repeated across a page boundary. The audit table
pages on its integer id alone.
"""

from datetime import datetime
from typing import Tuple
from uuid import UUID

from governance.services.ports import InvalidCursorError

SEPARATOR = "|"


def encode_keyset(created_at: datetime, row_id: UUID) -> str:
    return f"{created_at.isoformat()}{SEPARATOR}{row_id}"


def decode_keyset(cursor: str) -> Tuple[datetime, UUID]:
    """
    Parse a cursor produced by encode_keyset.

    Raises:
        InvalidCursorError: if the cursor is malformed
    """
    created_at, sep, row_id = cursor.partition(SEPARATOR)
    if not sep:
        raise InvalidCursorError(cursor)
    try:
        return datetime.fromisoformat(created_at), UUID(row_id)
    except ValueError as e:
        raise InvalidCursorError(cursor) from e


def decode_id(cursor: str) -> int:
    """Parse an integer id cursor. Raises InvalidCursorError if malformed."""
    try:
        return int(cursor)
    except ValueError as e:
        raise InvalidCursorError(cursor) from e
