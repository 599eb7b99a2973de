from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session
from starlette.responses import RedirectResponse

from settleup.api.deps import get_current_active_user, get_db, get_google_client
from settleup.core.config import settings
from settleup.core.errors import AuthError, SettleUpError
from settleup.core.logging_setup import logger
from settleup.models.user import User
from settleup.schemas.auth import AuthResponse, LoginRequest, RegionUpdate, RegisterRequest
from settleup.schemas.common import Region
from settleup.schemas.user import RegionEnvelope, UserEnvelope, UserRead
from settleup.services.audit import AuditService
from settleup.services.auth import AuthService
from settleup.services.identity import GoogleIdentityClient

router = APIRouter(prefix="/auth", tags=["auth"])


def _services(session: Session) -> tuple[AuthService, AuditService]:
    return AuthService(session), AuditService(session)


def _client_info(request: Request) -> dict[str, str | None]:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, request: Request, session: Session = Depends(get_db)) -> AuthResponse:
    auth_service, audit_service = _services(session)
    user, token = auth_service.register(payload)
    audit_service.record_auth(user_id=user.id, event_type="register", email=user.email, **_client_info(request))
    return AuthResponse(message="User registered successfully", token=token, user=UserRead.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, request: Request, session: Session = Depends(get_db)) -> AuthResponse:
    auth_service, audit_service = _services(session)
    try:
        user, token = auth_service.authenticate(payload)
    except AuthError:
        audit_service.record_auth(
            user_id=None,
            event_type="login",
            email=payload.email,
            success=False,
            **_client_info(request),
        )
        raise
    audit_service.record_auth(user_id=user.id, event_type="login", email=user.email, **_client_info(request))
    return AuthResponse(message="Login successful", token=token, user=UserRead.model_validate(user))


@router.get("/me", response_model=UserEnvelope)
def read_current_user(current_user: User = Depends(get_current_active_user)) -> UserEnvelope:
    return UserEnvelope(user=UserRead.model_validate(current_user))


@router.put("/region", response_model=RegionEnvelope)
def update_region(
    payload: RegionUpdate,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> RegionEnvelope:
    user = AuthService(session).update_region(current_user, payload)
    return RegionEnvelope(message="Region updated successfully", region=Region(**user.region))


@router.get("/google", include_in_schema=False)
def google_login(identity: GoogleIdentityClient = Depends(get_google_client)) -> RedirectResponse:
    return RedirectResponse(url=identity.authorization_url(), status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/google/callback", include_in_schema=False)
def google_callback(
    request: Request,
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    session: Session = Depends(get_db),
    identity: GoogleIdentityClient = Depends(get_google_client),
) -> RedirectResponse:
    frontend = settings.resolved_frontend_url()
    failure = RedirectResponse(
        url=f"{frontend}/login?error=auth_failed",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    if error or not code:
        logger.info("[auth] google callback without code (error=%s)", error)
        return failure

    auth_service, audit_service = _services(session)
    try:
        profile = identity.exchange_code(code)
        user, token = auth_service.authenticate_external(profile)
    except SettleUpError as exc:
        logger.warning("[auth] google sign-in failed: %s", exc.message)
        audit_service.record_auth(user_id=None, event_type="google_login", success=False, **_client_info(request))
        return failure

    audit_service.record_auth(user_id=user.id, event_type="google_login", email=user.email, **_client_info(request))
    return RedirectResponse(
        url=f"{frontend}/auth/callback?{urlencode({'token': token})}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
