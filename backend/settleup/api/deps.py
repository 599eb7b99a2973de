from typing import Annotated, Callable
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from settleup.core.config import settings
from settleup.core.errors import AuthError, ForbiddenError
from settleup.db.session import get_session
from settleup.models.user import User, UserRole
from settleup.services.identity import GoogleIdentityClient, get_identity_client
from settleup.services.notification import NotificationDispatcher
from settleup.services.payment_provider import PaymentProvider, get_payment_provider
from settleup.services.realtime import RealtimePublisher, connection_manager
from settleup.utils.security import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False)


def get_db() -> Session:
    yield from get_session()


def resolve_user_from_token(token: str | None, session: Session) -> User:
    if not token:
        raise AuthError("No token provided")
    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise AuthError(str(exc)) from exc

    try:
        user_id = UUID(str(payload["sub"]))
    except (KeyError, ValueError, TypeError) as exc:
        raise AuthError("Invalid token subject") from exc

    user = session.get(User, user_id)
    if not user:
        raise AuthError("User not found")
    return user


def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[Session, Depends(get_db)],
) -> User:
    return resolve_user_from_token(token, session)


def get_current_active_user(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if not current_user.is_active:
        raise ForbiddenError("User inactive")
    return current_user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed = {role.value for role in roles}

    def dependency(current_user: Annotated[User, Depends(get_current_active_user)]) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return dependency


def get_publisher() -> RealtimePublisher:
    return connection_manager


def get_dispatcher(
    session: Annotated[Session, Depends(get_db)],
    publisher: Annotated[RealtimePublisher, Depends(get_publisher)],
) -> NotificationDispatcher:
    return NotificationDispatcher(session, publisher)


def get_payment_provider_factory() -> Callable[[], PaymentProvider]:
    return get_payment_provider


def get_google_client() -> GoogleIdentityClient:
    return get_identity_client()
