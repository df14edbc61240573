"""
Core record of the link store.

A `Link` maps a short id to an original URL and remembers who created it.
`deleted` is a one-way flag: once set, the link is invisible to lookups but
its short id stays taken forever.
"""

import uuid
from dataclasses import dataclass
from typing import Union

from .errors import InvalidInputError

UserID = uuid.UUID


@dataclass
class Link:
    short_id: str
    original_url: str
    owner: UserID
    deleted: bool = False

    @property
    def live(self) -> bool:
        return not self.deleted


def parse_user_id(value: Union[str, UserID], op: str = "parse_user_id") -> UserID:
    """
    Parse an owner identifier from its canonical string form.

    Args:
        value: UUID string (or an already-parsed UUID, returned unchanged).
        op: Operation name used in the error message.

    Returns:
        uuid.UUID

    Raises:
        InvalidInputError: If the value is not a valid UUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError) as exc:
        raise InvalidInputError(f"unable to parse user id {value!r}", op=op) from exc
