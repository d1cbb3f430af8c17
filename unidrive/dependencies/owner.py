from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from unidrive.config import settings
from unidrive.database import get_db
from unidrive.models import User
from unidrive.services.folders import ensure_root_folder


# The authenticating proxy in front of the API sets X-User-Id (and
# optionally X-Username) on every request it lets through.
def get_current_owner(
    x_user_id: str | None = Header(None),
    x_username: str | None = Header(None),
    db: Session = Depends(get_db),
) -> User:
    try:
        user_id = int(x_user_id) if x_user_id is not None else None
    except ValueError:
        user_id = None
    if user_id is None or user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "success": False,
                "error": "Unauthorized",
                "message": "Missing or invalid owner",
            },
        )

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None:
        user = User(
            id=user_id,
            username=x_username or f"user-{user_id}",
            max_storage_bytes=settings.DEFAULT_MAX_STORAGE_BYTES,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    ensure_root_folder(db, user)
    return user
