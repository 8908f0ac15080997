"""Composite keyset cursor shared by all list endpoints.

Format: {"ts": "<created_at ISO>", "id": "<row id>"} encoded as Base64 JSON.
Rows are always ordered by (created_at DESC, id DESC).
"""

import base64
import json
from datetime import datetime


def cursor_encode(created_at: datetime, row_id: str) -> str:
    payload = {"ts": created_at.isoformat(), "id": row_id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[datetime | None, str | None]:
    """Decode cursor -> (created_at, id), or (None, None) on error.

    asyncpg requires a real datetime for TIMESTAMPTZ parameters, so the
    timestamp is parsed here rather than in each repository.
    """
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return datetime.fromisoformat(data["ts"]), str(data["id"])
    except (ValueError, KeyError, TypeError):
        return None, None
