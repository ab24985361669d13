"""
Driver roster.
"""
from typing import Optional

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import InvalidDriverException


def get_roster() -> list[str]:
    return list(settings.DRIVER_ROSTER)


def validate_driver(name: Optional[str], roster: Optional[list[str]] = None) -> Optional[str]:
    """
    Check an assignee against the roster.

    Blank means unassigned and returns None.

    Raises:
        InvalidDriverException: name is not on the roster
    """
    if name is None or not name.strip():
        return None
    roster = get_roster() if roster is None else roster
    name = name.strip()
    if name not in roster:
        raise InvalidDriverException(name, roster)
    return name
