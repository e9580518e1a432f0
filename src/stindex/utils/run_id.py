from __future__ import annotations

import secrets
from datetime import datetime, timezone


def new_run_id() -> str:
    """Sortable run id, e.g. 20240314T100000Z-3f9a1c."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{secrets.token_hex(3)}"
