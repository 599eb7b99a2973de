from datetime import datetime
from uuid import UUID

from sqlmodel import Session, select

from settleup.core.errors import AuthError, DuplicateError, ValidationError
from settleup.models.user import User, UserRole
from settleup.schemas.auth import ExternalProfile, LoginRequest, RegionUpdate, RegisterRequest
from settleup.utils.email_validation import normalize_email
from settleup.utils.security import create_access_token, get_password_hash, verify_password

MIN_PASSWORD_LENGTH = 8

DEFAULT_REGION = {"timezone": "Asia/Kolkata", "currency": "INR", "country": "India"}
EXTERNAL_REGION = {"timezone": "UTC", "currency": "USD", "country": "International"}


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, payload: RegisterRequest) -> tuple[User, str]:
        try:
            email = normalize_email(payload.email)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if len(payload.password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        if self.get_by_email(email):
            raise DuplicateError("User already exists")

        user = User(
            email=email,
            password_hash=get_password_hash(payload.password),
            name=payload.name.strip(),
            company_name=payload.company_name.strip(),
            role=UserRole.USER.value,
            timezone=payload.timezone or DEFAULT_REGION["timezone"],
            currency=(payload.currency or DEFAULT_REGION["currency"]).upper(),
            country=payload.country or DEFAULT_REGION["country"],
            last_login_at=datetime.utcnow(),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user, self._build_token(user)

    def authenticate(self, payload: LoginRequest) -> tuple[User, str]:
        try:
            email = normalize_email(payload.email)
        except ValueError as exc:
            raise AuthError("Invalid credentials") from exc

        user = self.get_by_email(email)
        if not user or not user.is_active:
            raise AuthError("Invalid credentials")
        if not verify_password(payload.password, user.password_hash):
            raise AuthError("Invalid credentials")

        user.last_login_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user, self._build_token(user)

    def authenticate_external(self, profile: ExternalProfile) -> tuple[User, str]:
        """Sign in with a verified external identity, linking or creating the user."""
        try:
            email = normalize_email(profile.email)
        except ValueError as exc:
            raise AuthError("External identity has no usable email") from exc

        user = self.session.exec(select(User).where(User.google_id == profile.provider_id)).first()
        if not user:
            user = self.get_by_email(email)
            if user:
                user.google_id = profile.provider_id
            else:
                name = profile.name.strip() or email.split("@")[0]
                first_name = name.split()[0]
                user = User(
                    email=email,
                    google_id=profile.provider_id,
                    name=name,
                    company_name=f"{first_name} Co.",
                    role=UserRole.USER.value,
                    **EXTERNAL_REGION,
                )
        if not user.is_active:
            raise AuthError("Invalid credentials")

        user.last_login_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user, self._build_token(user)

    def update_region(self, user: User, payload: RegionUpdate) -> User:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "currency" in changes:
            changes["currency"] = changes["currency"].strip().upper()
        for field, value in changes.items():
            setattr(user, field, value)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> User | None:
        return self.session.exec(select(User).where(User.email == email)).first()

    def get_user(self, user_id: UUID) -> User | None:
        return self.session.get(User, user_id)

    def _build_token(self, user: User) -> str:
        return create_access_token(subject=str(user.id), role=user.role)
