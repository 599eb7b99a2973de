import json
from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from settleup.api.deps import (
    get_current_active_user,
    get_db,
    get_dispatcher,
    get_payment_provider_factory,
)
from settleup.core.config import settings
from settleup.core.errors import ValidationError
from settleup.core.logging_setup import logger
from settleup.models.payment import ScheduleStatus
from settleup.models.user import User
from settleup.schemas.payment import (
    PaymentLinkRequest,
    PaymentLinkResponse,
    ScheduleCreate,
    ScheduleEnvelope,
    ScheduleList,
    ScheduleRead,
    ScheduleUpdate,
    WebhookAck,
)
from settleup.services.notification import NotificationDispatcher
from settleup.services.payment import PaymentScheduleService, parse_schedule_ref
from settleup.services.payment_provider import PaymentProvider
from settleup.utils.webhook_signature import verify_stripe_signature

router = APIRouter(prefix="/payments", tags=["payments"])


def _service(session: Session, dispatcher: NotificationDispatcher | None = None) -> PaymentScheduleService:
    return PaymentScheduleService(session, dispatcher)


@router.post("/schedule", response_model=ScheduleEnvelope, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleCreate,
    session: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> ScheduleEnvelope:
    schedule = _service(session, dispatcher).create_schedule(current_user, payload)
    return ScheduleEnvelope(
        message="Payment schedule created successfully",
        payment_schedule=ScheduleRead.model_validate(schedule),
    )


@router.get("/client/{client_id}", response_model=ScheduleList)
def list_client_schedules(
    client_id: UUID,
    status_filter: ScheduleStatus | None = Query(default=None, alias="status"),
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ScheduleList:
    schedules = _service(session).list_schedules(current_user.id, client_id, status=status_filter)
    return ScheduleList(payment_schedules=[ScheduleRead.model_validate(item) for item in schedules])


@router.put("/schedule/{client_id}/{schedule_ref}", response_model=ScheduleEnvelope)
def update_schedule(
    client_id: UUID,
    schedule_ref: str,
    payload: ScheduleUpdate,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ScheduleEnvelope:
    schedule = _service(session).update_schedule(
        current_user.id,
        client_id,
        parse_schedule_ref(schedule_ref),
        payload,
    )
    return ScheduleEnvelope(
        message="Payment schedule updated successfully",
        payment_schedule=ScheduleRead.model_validate(schedule),
    )


@router.post("/{client_id}/{schedule_ref}/mark-paid", response_model=ScheduleEnvelope)
def mark_schedule_paid(
    client_id: UUID,
    schedule_ref: str,
    session: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> ScheduleEnvelope:
    schedule = _service(session, dispatcher).mark_paid(current_user, client_id, parse_schedule_ref(schedule_ref))
    return ScheduleEnvelope(message="Payment marked as paid", payment_schedule=ScheduleRead.model_validate(schedule))


@router.post("/create-payment-link", response_model=PaymentLinkResponse)
def create_payment_link(
    payload: PaymentLinkRequest,
    session: Session = Depends(get_db),
    provider_factory: Callable[[], PaymentProvider] = Depends(get_payment_provider_factory),
    current_user: User = Depends(get_current_active_user),
) -> PaymentLinkResponse:
    link = _service(session).create_payment_link(current_user, payload, provider_factory)
    return PaymentLinkResponse(payment_link=link.url, expires_at=link.expires_at)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    session: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> WebhookAck:
    """Stripe webhook, verified with the ``Stripe-Signature`` header.

    Only ``checkout.session.completed`` changes state; other events are
    acknowledged and logged.
    """
    raw_body = await request.body()
    try:
        verify_stripe_signature(
            raw_body,
            request.headers.get("Stripe-Signature"),
            settings.stripe_webhook_secret,
            tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        )
    except ValueError as exc:
        logger.warning("[webhook] rejected: %s", exc)
        raise ValidationError(f"Webhook Error: {exc}") from exc

    try:
        event = json.loads(raw_body)
    except ValueError as exc:
        raise ValidationError("Webhook Error: invalid JSON payload") from exc

    event_type = event.get("type")
    if event_type == "checkout.session.completed":
        checkout = (event.get("data") or {}).get("object") or {}
        _service(session, dispatcher).apply_checkout_session(checkout)
    else:
        logger.info("[webhook] unhandled event type %s", event_type)
    return WebhookAck()
