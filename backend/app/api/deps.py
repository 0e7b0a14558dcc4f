from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.policy import SchedulingPolicy, policy_from_settings
from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.teacher import Teacher
from app.models.user import User, UserRole
from app.services.actor import Actor
from app.services.booking import BookingService
from app.services.calendar import CalendarClient, calendar_client_from_settings
from app.services.catalog import ScheduleCatalog, load_catalog
from app.services.notifications import Notifier
from app.services.substitutes import SubstituteWorkflow

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Verified email carried by the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc
    email = payload.get("sub")
    if not email or "@" not in email:
        raise credentials_exception
    return email.strip().lower()


def get_current_user(
    email: str = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access has been granted to this account. Submit an access request.",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    teacher = db.execute(
        select(Teacher).where(func.lower(Teacher.email) == current_user.email.lower())
    ).scalar_one_or_none()
    return Actor.from_user(current_user, teacher)


def get_current_teacher(actor: Actor = Depends(get_current_actor)) -> Teacher:
    if actor.teacher is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not on the teacher roster")
    return actor.teacher


def get_policy() -> SchedulingPolicy:
    return policy_from_settings(get_settings())


def get_notifier() -> Notifier:
    return Notifier()


def get_calendar_client() -> CalendarClient:
    return calendar_client_from_settings(get_settings())


def get_catalog(db: Session = Depends(get_db)) -> ScheduleCatalog:
    return load_catalog(db)


def get_booking_service(
    db: Session = Depends(get_db),
    catalog: ScheduleCatalog = Depends(get_catalog),
    policy: SchedulingPolicy = Depends(get_policy),
    notifier: Notifier = Depends(get_notifier),
    calendar: CalendarClient = Depends(get_calendar_client),
) -> BookingService:
    return BookingService(db, catalog=catalog, policy=policy, notifier=notifier, calendar=calendar)


def get_substitute_workflow(
    db: Session = Depends(get_db),
    catalog: ScheduleCatalog = Depends(get_catalog),
    policy: SchedulingPolicy = Depends(get_policy),
    notifier: Notifier = Depends(get_notifier),
    calendar: CalendarClient = Depends(get_calendar_client),
) -> SubstituteWorkflow:
    return SubstituteWorkflow(db, catalog=catalog, policy=policy, notifier=notifier, calendar=calendar)
