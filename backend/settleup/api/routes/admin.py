from fastapi import APIRouter, Depends
from sqlmodel import Session

from settleup.api.deps import get_db, get_publisher, require_roles
from settleup.models.user import User, UserRole
from settleup.schemas.payment import MaintenanceReport
from settleup.services.realtime import RealtimePublisher
from settleup.services.reminders import run_maintenance

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/maintenance/run", response_model=MaintenanceReport)
def run_maintenance_now(
    session: Session = Depends(get_db),
    publisher: RealtimePublisher = Depends(get_publisher),
    _: User = Depends(require_roles(UserRole.ADMIN)),
) -> MaintenanceReport:
    return run_maintenance(session, publisher)
