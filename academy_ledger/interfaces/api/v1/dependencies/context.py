from datetime import date, datetime, timezone

from fastapi import Header, HTTPException, status


def get_current_user_id(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> int | None:
    """Identity of the operator, as forwarded by the upstream gateway. Optional."""
    if x_user_id is None:
        return None
    try:
        return int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-User-Id must be an integer") from exc


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_today() -> date:
    return get_now().date()
