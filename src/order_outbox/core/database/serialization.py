"""
Column conversions shared by the SQL repositories.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Store timestamps as fixed-width ISO-8601 UTC text, so text order is time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def to_db_json(value: Any) -> str:
    return json.dumps(value)


def from_db_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value
