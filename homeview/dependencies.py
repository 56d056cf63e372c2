from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from homeview.core.security import CurrentUser, decode_access_token, user_from_claims
from homeview.database import get_db
from homeview.jobs.scheduler import JobScheduler
from homeview.services.notification_service import NotificationService, get_notification_service
from homeview.services.reminder_service import ReminderService
from homeview.services.viewing_service import ViewingService

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
        )

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    user = user_from_claims(payload)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized: Admin access required",
        )
    return user


def get_viewing_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> ViewingService:
    return ViewingService(db, notifier)


def get_reminder_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> ReminderService:
    return ReminderService(db, notifier)


def get_scheduler(request: Request) -> Optional[JobScheduler]:
    """The scheduler built at startup, or None when background jobs are disabled."""
    return getattr(request.app.state, "scheduler", None)
