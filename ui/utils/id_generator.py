"""ID generation helpers.

Generation runs are keyed by a short random id (e.g. `RUN-3f9a0c1b2d4e`).
"""

from __future__ import annotations

import uuid


def new_short_id(prefix: str) -> str:
    """Generate a short ID for UI-created records (12 hex chars)."""

    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def new_run_id() -> str:
    return new_short_id("RUN")
