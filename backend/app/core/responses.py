from datetime import datetime, timezone
from typing import Any

from app.core.config import get_settings

settings = get_settings()


def envelope(data: Any, **meta: Any) -> dict:
    """Wrap a payload in the standard success envelope."""
    body_meta = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.API_VERSION,
    }
    body_meta.update(meta)
    return {"success": True, "data": data, "meta": body_meta}
