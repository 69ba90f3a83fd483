"""
Request owner resolution.

Authentication happens upstream; the gateway forwards the verified user id
in the ``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException

OWNER_HEADER = "X-User-Id"
OWNER_MAX = 64  # workout_plans.owner_id column width


async def get_owner_id(
    x_user_id: Annotated[str | None, Header(alias=OWNER_HEADER)] = None,
) -> str:
    owner = (x_user_id or "").strip()
    if not owner:
        raise HTTPException(status_code=401, detail="missing user")
    if len(owner) > OWNER_MAX:
        raise HTTPException(status_code=400, detail="invalid user")
    return owner
