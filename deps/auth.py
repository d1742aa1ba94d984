import os
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class Caller:
    id: str
    role: str = "user"
    authorization: Optional[str] = None


def current_user(
    x_user_id: Annotated[str | None, Header(alias="x-user-id")] = None,
    x_user_role: Annotated[str | None, Header(alias="x-user-role")] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Caller:
    """
    Identity set by the gateway after it has verified the caller's token.
    The raw Authorization header is kept so it can be forwarded downstream.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required.")
    return Caller(id=x_user_id.strip(), role=x_user_role or "user", authorization=authorization)


def require_admin(
    x_admin_token: Annotated[str | None, Header(alias="x-admin-token")] = None,
) -> None:
    """
    Strict admin-only guard. Requires the X-Admin-Token header to match ADMIN_TOKEN.
    """
    admin_token = os.getenv("ADMIN_TOKEN", "")
    if not admin_token:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured on server.")
    if x_admin_token != admin_token:
        raise HTTPException(status_code=401, detail="Unauthorized.")


def require_client(
    x_api_key: Annotated[str | None, Header(alias="x-api-key")] = None,
    x_admin_token: Annotated[str | None, Header(alias="x-admin-token")] = None,
) -> None:
    """
    Service-to-service guard. Accepts either:
      - X-Admin-Token that matches ADMIN_TOKEN (admins always allowed), or
      - X-Api-Key that matches SERVICE_API_KEY.
    """
    admin_token = os.getenv("ADMIN_TOKEN", "")
    if admin_token and x_admin_token == admin_token:
        return

    api_key = os.getenv("SERVICE_API_KEY", "")
    if not api_key:
        raise HTTPException(status_code=500, detail="SERVICE_API_KEY not configured on server.")
    if x_api_key != api_key:
        raise HTTPException(status_code=401, detail="Unauthorized.")
