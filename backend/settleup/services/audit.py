from uuid import UUID

from sqlmodel import Session, select

from settleup.models.audit import AuthLog


class AuditService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record_auth(
        self,
        user_id: UUID | None,
        event_type: str,
        email: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        success: bool = True,
    ) -> None:
        log = AuthLog(
            user_id=user_id,
            event_type=event_type,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
        )
        self.session.add(log)
        self.session.commit()

    def list_auth_events(self, user_id: UUID | None = None, limit: int = 100) -> list[AuthLog]:
        statement = select(AuthLog)
        if user_id:
            statement = statement.where(AuthLog.user_id == user_id)
        statement = statement.order_by(AuthLog.created_at.desc()).limit(limit)
        return list(self.session.exec(statement).all())
