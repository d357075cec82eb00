"""
Router des envois d'emails explicites : confirmation, suivi, rappels
et test de la configuration SMTP.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.dependencies import get_current_principal, require_staff
from counseling.principal import Principal
from counseling.schemas.common import ApiResponse
from counseling.schemas.email import (
    ConfirmationEmailRequest,
    EmailSentData,
    FollowUpEmailRequest,
    ReminderRequest,
    ReminderResult,
)
from counseling.services import notification_service

router = APIRouter(prefix="/api/email", tags=["Emails"])


@router.post(
    "/appointment-confirmation",
    response_model=ApiResponse[EmailSentData],
    summary="Renvoyer la confirmation d'un rendez-vous",
)
def send_confirmation(
    data: ConfirmationEmailRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    result = notification_service.send_confirmation(db, data.appointment_id, principal, data.custom_message)
    return ApiResponse(message="Email de confirmation envoyé.", data=result)


@router.post("/follow-up", response_model=ApiResponse[EmailSentData], summary="Envoyer un email de suivi")
def send_follow_up(
    data: FollowUpEmailRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """L'envoi est tracé ; s'il concerne un rendez-vous, celui-ci est marqué emailSent."""
    result = notification_service.send_follow_up(db, data, principal)
    return ApiResponse(message="Email de suivi envoyé.", data=result)


@router.post("/reminders", response_model=ApiResponse[ReminderResult], summary="Envoyer les rappels")
def send_reminders(
    data: Optional[ReminderRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """
    Rappels pour les rendez-vous confirmés de la date cible (demain par défaut).
    Idempotent : un rendez-vous déjà rappelé n'est pas renvoyé.
    """
    target_date = data.target_date if data is not None else None
    result = notification_service.send_reminders(db, target_date)
    return ApiResponse(message="Rappels traités.", data=result)


@router.post("/test", response_model=ApiResponse[None], summary="Tester la configuration SMTP")
def check_email_configuration(principal: Principal = Depends(get_current_principal)):
    notification_service.check_connection()
    return ApiResponse(message="La configuration email fonctionne.")
