"""
Router pour les rendez-vous de conseil.

Cycle de vie :
  Pending → Confirmed → In-Progress → Completed | No-Show
  Pending / Confirmed / Rescheduled → Rescheduled (nouvelle date, à reconfirmer)
  tout statut non terminal → Cancelled

La confirmation déclenche l'envoi de l'email en arrière-plan, après la réponse.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.dependencies import get_current_principal, list_params, require_staff
from counseling.principal import Principal
from counseling.schemas.appointment import (
    AppointmentCreate,
    AppointmentData,
    AppointmentListData,
    AppointmentResponse,
    AppointmentUpdate,
    CancelRequest,
    CompleteRequest,
    ConfirmRequest,
    FeedbackRequest,
    RescheduleRequest,
    StatusUpdateRequest,
    VersionedRequest,
)
from counseling.schemas.common import ApiResponse, Page
from counseling.services import appointment_service, notification_service
from counseling.services.appointment_workflow import CONFIRMED
from counseling.services.query_service import ListParams

router = APIRouter(prefix="/api/appointments", tags=["Rendez-vous"])


def _data(db: Session, appointment) -> AppointmentData:
    return AppointmentData(appointment=appointment_service.to_detailed_response(db, appointment))


def _version(data: Optional[VersionedRequest]) -> Optional[int]:
    return data.version if data is not None else None


@router.get("", response_model=ApiResponse[Page[AppointmentResponse]], summary="Lister les rendez-vous")
def list_appointments(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Liste paginée et filtrée (status, type, priority, date, search).
    Un élève ne reçoit que ses propres rendez-vous, quels que soient les filtres.
    """
    return ApiResponse(data=appointment_service.list_appointments(db, params, principal))


@router.get("/pending", response_model=ApiResponse[AppointmentListData], summary="Demandes à confirmer")
def list_pending(db: Session = Depends(get_db), principal: Principal = Depends(require_staff)):
    appointments = appointment_service.list_pending(db)
    return ApiResponse(data=AppointmentListData(appointments=appointment_service.to_responses(db, appointments)))


@router.get("/today", response_model=ApiResponse[AppointmentListData], summary="Séances du jour")
def list_today(db: Session = Depends(get_db), principal: Principal = Depends(require_staff)):
    appointments = appointment_service.list_today(db)
    return ApiResponse(data=AppointmentListData(appointments=appointment_service.to_responses(db, appointments)))


@router.get("/upcoming", response_model=ApiResponse[AppointmentListData], summary="Séances à venir")
def list_upcoming(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    appointments = appointment_service.list_upcoming(db, days)
    return ApiResponse(data=AppointmentListData(appointments=appointment_service.to_responses(db, appointments)))


@router.get("/{appointment_id}", response_model=ApiResponse[AppointmentData], summary="Détail d'un rendez-vous")
def get_appointment(
    appointment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    appointment = appointment_service.get_appointment(db, appointment_id, principal)
    return ApiResponse(data=_data(db, appointment))


@router.post("", response_model=ApiResponse[AppointmentData], status_code=201, summary="Demander un rendez-vous")
def request_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Crée une demande en statut Pending.
    Un élève demande pour lui-même ; un admin doit préciser `student`.
    La date demandée ne peut pas être passée.
    """
    appointment = appointment_service.request_appointment(db, data, principal)
    return ApiResponse(message="Demande de rendez-vous enregistrée.", data=_data(db, appointment))


@router.put("/{appointment_id}", response_model=ApiResponse[AppointmentData], summary="Modifier un rendez-vous")
def update_appointment(
    appointment_id: uuid.UUID,
    data: AppointmentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Modifie les champs hors statut. Le statut ne change que par les routes de transition."""
    appointment = appointment_service.update_appointment(db, appointment_id, data, principal)
    return ApiResponse(message="Rendez-vous mis à jour.", data=_data(db, appointment))


@router.patch("/{appointment_id}/confirm", response_model=ApiResponse[AppointmentData], summary="Confirmer")
def confirm_appointment(
    appointment_id: uuid.UUID,
    data: ConfirmRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """
    Pending ou Rescheduled → Confirmed.
    L'email de confirmation part en arrière-plan ; son échec n'annule pas la confirmation.
    """
    appointment = appointment_service.confirm(
        db, appointment_id, data.confirmed_date, data.confirmed_time, principal, data.version
    )
    background_tasks.add_task(notification_service.notify_confirmation, appointment.id)
    return ApiResponse(message="Rendez-vous confirmé.", data=_data(db, appointment))


@router.patch("/{appointment_id}/start", response_model=ApiResponse[AppointmentData], summary="Démarrer la séance")
def start_appointment(
    appointment_id: uuid.UUID,
    data: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    appointment = appointment_service.start(db, appointment_id, principal, _version(data))
    return ApiResponse(message="Séance démarrée.", data=_data(db, appointment))


@router.patch("/{appointment_id}/complete", response_model=ApiResponse[AppointmentData], summary="Terminer la séance")
def complete_appointment(
    appointment_id: uuid.UUID,
    data: Optional[CompleteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """
    Confirmed ou In-Progress → Completed.
    Les notes de séance fournies sont fusionnées ; les compteurs de l'élève sont mis à jour.
    """
    appointment = appointment_service.complete(db, appointment_id, data or CompleteRequest(), principal)
    return ApiResponse(message="Séance terminée.", data=_data(db, appointment))


@router.patch("/{appointment_id}/no-show", response_model=ApiResponse[AppointmentData], summary="Élève absent")
def mark_no_show(
    appointment_id: uuid.UUID,
    data: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    appointment = appointment_service.mark_no_show(db, appointment_id, principal, _version(data))
    return ApiResponse(message="Absence enregistrée.", data=_data(db, appointment))


@router.patch("/{appointment_id}/cancel", response_model=ApiResponse[AppointmentData], summary="Annuler")
def cancel_appointment(
    appointment_id: uuid.UUID,
    data: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Annulation par l'élève concerné ou par un admin. Impossible sur un rendez-vous terminé."""
    reason = data.reason if data is not None else None
    appointment = appointment_service.cancel(db, appointment_id, reason, principal, _version(data))
    return ApiResponse(message="Rendez-vous annulé.", data=_data(db, appointment))


@router.patch("/{appointment_id}/reschedule", response_model=ApiResponse[AppointmentData], summary="Reporter")
def reschedule_appointment(
    appointment_id: uuid.UUID,
    data: RescheduleRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Nouvelle date demandée ; la date confirmée est effacée et le rendez-vous doit être reconfirmé."""
    appointment = appointment_service.reschedule(db, appointment_id, data.new_date, data.new_time, principal, data.version)
    return ApiResponse(message="Rendez-vous reporté.", data=_data(db, appointment))


@router.patch("/{appointment_id}/status", response_model=ApiResponse[AppointmentData], summary="Changer le statut")
def update_status(
    appointment_id: uuid.UUID,
    data: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """
    Changement manuel vers Pending, Confirmed, Completed ou Cancelled,
    soumis aux mêmes transitions que les routes dédiées.
    """
    previous = appointment_service.get_appointment(db, appointment_id, principal).status
    appointment = appointment_service.set_status(db, appointment_id, data.status, principal, data.version)
    if appointment.status == CONFIRMED and previous != CONFIRMED:
        background_tasks.add_task(notification_service.notify_confirmation, appointment.id)
    return ApiResponse(message="Statut mis à jour.", data=_data(db, appointment))


@router.put("/{appointment_id}/feedback", response_model=ApiResponse[AppointmentData], summary="Donner un avis")
def record_feedback(
    appointment_id: uuid.UUID,
    data: FeedbackRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Note de 1 à 5 après une séance terminée (avis élève ou avis conseiller)."""
    appointment = appointment_service.record_feedback(db, appointment_id, data, principal)
    return ApiResponse(message="Avis enregistré.", data=_data(db, appointment))


@router.delete("/{appointment_id}", response_model=ApiResponse[None], summary="Supprimer un rendez-vous")
def delete_appointment(
    appointment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    appointment_service.delete_appointment(db, appointment_id, principal)
    return ApiResponse(message="Rendez-vous supprimé.")
