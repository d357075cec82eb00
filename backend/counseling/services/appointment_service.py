"""
Service métier des rendez-vous : demande, transitions de statut, mise à jour,
avis, suppression et lectures restreintes au périmètre de l'appelant.

Règles communes à toutes les mutations :
- un élève n'agit que sur ses propres rendez-vous (ForbiddenError sinon) ;
- chaque changement de statut est validé par appointment_workflow avant toute
  modification (aucune mutation partielle en cas de refus) ;
- si l'appelant fournit `version`, elle doit correspondre à la version stockée,
  et la colonne version protège en plus l'UPDATE contre les écritures concurrentes.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from counseling.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from counseling.models.admin import Admin
from counseling.models.appointment import Appointment
from counseling.models.student import Student
from counseling.principal import Principal
from counseling.schemas.appointment import (
    AppointmentCreate,
    AppointmentDetailsOut,
    AppointmentResponse,
    AppointmentUpdate,
    CommunicationOut,
    CompleteRequest,
    CounsellorRef,
    FeedbackOut,
    FeedbackRequest,
    MetadataOut,
    SessionNotesOut,
    StudentRef,
)
from counseling.schemas.common import Page
from counseling.services import query_service, student_service
from counseling.services.appointment_workflow import (
    AWAITING_CONFIRMATION,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    IN_PROGRESS,
    NO_SHOW,
    PENDING,
    RESCHEDULED,
    ensure_transition,
)

logger = logging.getLogger(__name__)

APPOINTMENT_NOT_FOUND = "Rendez-vous introuvable."
DEFAULT_CANCEL_REASON = "Appointment cancelled"

# Champs qu'un élève peut modifier sur une demande non encore confirmée
STUDENT_EDITABLE_FIELDS = {"reason", "student_concerns", "mode"}


# --- Chargement et garde-fous ---

def get_appointment(db: Session, appointment_id: uuid.UUID, actor: Principal) -> Appointment:
    """Retourne le rendez-vous si l'appelant y a accès."""
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError(APPOINTMENT_NOT_FOUND)
    if actor.is_student and appointment.student_id != actor.id:
        raise ForbiddenError("Ce rendez-vous ne vous appartient pas.")
    return appointment


def _check_version(appointment: Appointment, expected: Optional[int]) -> None:
    if expected is not None and expected != appointment.version:
        raise ConflictError()


def _commit(db: Session, appointment: Appointment) -> Appointment:
    """Commit protégé par la colonne version (StaleDataError → ConflictError)."""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError()
    db.refresh(appointment)
    return appointment


# --- Création ---

def request_appointment(db: Session, data: AppointmentCreate, actor: Principal) -> Appointment:
    """
    Crée une demande de rendez-vous en statut Pending, sans conseiller ni date confirmée.
    Un élève demande toujours pour lui-même ; un admin doit désigner l'élève.
    """
    if actor.is_student:
        student_id = actor.id
    else:
        if data.student is None:
            raise InvalidInputError("L'élève concerné est obligatoire.")
        student_service.get_student(db, data.student)
        student_id = data.student

    details = data.appointment_details
    appointment = Appointment(
        student_id=student_id,
        counsellor_id=None,
        requested_date=details.requested_date,
        requested_time=details.requested_time,
        confirmed_date=None,
        confirmed_time=None,
        duration=details.duration,
        type=details.type,
        mode=details.mode,
        priority=details.priority,
        reason=data.reason,
        student_concerns=data.student_concerns,
        status=PENDING,
        requested_by=data.requested_by,
        urgency_level=data.urgency_level,
        tags=data.tags,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)

    logger.info("Rendez-vous demandé : %s (élève %s, %s)", appointment.id, student_id, appointment.type)
    return appointment


# --- Transitions ---

def confirm(
    db: Session,
    appointment_id: uuid.UUID,
    confirmed_date: date,
    confirmed_time: str,
    actor: Principal,
    version: Optional[int] = None,
) -> Appointment:
    """
    Pending / Rescheduled → Confirmed.
    Fixe la date et l'heure confirmées et marque la confirmation comme envoyée.
    Le conseiller qui confirme est assigné si aucun ne l'est encore.
    """
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    ensure_transition(appointment.status, CONFIRMED)

    appointment.confirmed_date = confirmed_date
    appointment.confirmed_time = confirmed_time
    appointment.status = CONFIRMED
    appointment.confirmation_sent = True
    appointment.confirmation_sent_date = datetime.now()
    if appointment.counsellor_id is None and actor.is_staff:
        appointment.counsellor_id = actor.id

    _commit(db, appointment)
    logger.info("Rendez-vous %s confirmé pour le %s à %s", appointment.id, confirmed_date, confirmed_time)
    return appointment


def start(db: Session, appointment_id: uuid.UUID, actor: Principal, version: Optional[int] = None) -> Appointment:
    """Confirmed → In-Progress (début de séance)."""
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    ensure_transition(appointment.status, IN_PROGRESS)

    appointment.status = IN_PROGRESS
    return _commit(db, appointment)


def complete(
    db: Session,
    appointment_id: uuid.UUID,
    session: CompleteRequest,
    actor: Principal,
) -> Appointment:
    """
    Confirmed / In-Progress → Completed.
    Fusionne les notes de séance fournies (les champs absents restent inchangés)
    et met à jour les compteurs de l'élève dans la même transaction.
    """
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, session.version)
    ensure_transition(appointment.status, COMPLETED)

    for field, value in session.model_dump(exclude_unset=True, exclude={"version"}).items():
        if value is not None:
            setattr(appointment, field, value)
    appointment.status = COMPLETED
    if appointment.counsellor_id is None and actor.is_staff:
        appointment.counsellor_id = actor.id

    if not appointment.session_summary:
        logger.warning("Rendez-vous %s terminé sans résumé de séance.", appointment.id)

    student = db.get(Student, appointment.student_id)
    if student is not None:
        student_service.record_completed_session(student)

    _commit(db, appointment)
    logger.info("Rendez-vous %s terminé", appointment.id)
    return appointment


def mark_no_show(db: Session, appointment_id: uuid.UUID, actor: Principal, version: Optional[int] = None) -> Appointment:
    """In-Progress → No-Show."""
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    ensure_transition(appointment.status, NO_SHOW)

    appointment.status = NO_SHOW
    return _commit(db, appointment)


def cancel(
    db: Session,
    appointment_id: uuid.UUID,
    reason: Optional[str],
    actor: Principal,
    version: Optional[int] = None,
) -> Appointment:
    """Tout statut non terminal → Cancelled. Le motif est conservé dans preSessionNotes."""
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    ensure_transition(appointment.status, CANCELLED)

    appointment.status = CANCELLED
    appointment.pre_session_notes = reason or DEFAULT_CANCEL_REASON

    _commit(db, appointment)
    logger.info("Rendez-vous %s annulé par %s (%s)", appointment.id, actor.role, actor.id)
    return appointment


def reschedule(
    db: Session,
    appointment_id: uuid.UUID,
    new_date: date,
    new_time: str,
    actor: Principal,
    version: Optional[int] = None,
) -> Appointment:
    """
    Pending / Confirmed / Rescheduled → Rescheduled.
    Remplace la date demandée et efface la date confirmée : le rendez-vous
    doit être reconfirmé.
    """
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    ensure_transition(appointment.status, RESCHEDULED)

    appointment.requested_date = new_date
    appointment.requested_time = new_time
    appointment.confirmed_date = None
    appointment.confirmed_time = None
    appointment.confirmation_sent = False
    appointment.confirmation_sent_date = None
    appointment.reminder_sent = False
    appointment.reminder_sent_date = None
    appointment.status = RESCHEDULED

    return _commit(db, appointment)


def set_status(
    db: Session,
    appointment_id: uuid.UUID,
    target: str,
    actor: Principal,
    version: Optional[int] = None,
) -> Appointment:
    """
    Changement manuel de statut (PATCH /status), limité à Pending, Confirmed,
    Completed et Cancelled. Passe par les mêmes transitions que les routes dédiées :
    Confirmed reprend la date demandée comme date confirmée.
    Redemander le statut courant ne modifie rien.
    """
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, version)
    if appointment.status == target:
        return appointment

    if target == CONFIRMED:
        return confirm(db, appointment_id, appointment.requested_date, appointment.requested_time, actor)
    if target == COMPLETED:
        return complete(db, appointment_id, CompleteRequest(), actor)
    if target == CANCELLED:
        return cancel(db, appointment_id, None, actor)

    # Retour en attente (uniquement depuis Rescheduled)
    ensure_transition(appointment.status, PENDING)
    appointment.status = PENDING
    appointment.confirmed_date = None
    appointment.confirmed_time = None
    return _commit(db, appointment)


# --- Autres mutations ---

def update_appointment(db: Session, appointment_id: uuid.UUID, data: AppointmentUpdate, actor: Principal) -> Appointment:
    """
    Modifie les champs hors statut. Un élève ne peut modifier que le motif,
    ses préoccupations et le mode, tant que le rendez-vous n'est pas confirmé.
    """
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, data.version)

    changes = data.model_dump(exclude_unset=True, exclude={"version"})
    if actor.is_student:
        forbidden = set(changes) - STUDENT_EDITABLE_FIELDS
        if forbidden:
            raise ForbiddenError(f"Champs non modifiables par un élève : {', '.join(sorted(forbidden))}")
        if appointment.status not in AWAITING_CONFIRMATION:
            raise ForbiddenError("Un rendez-vous confirmé ne peut plus être modifié par l'élève.")

    counsellor_id = changes.pop("counsellor", None)
    if counsellor_id is not None:
        if db.get(Admin, counsellor_id) is None:
            raise NotFoundError("Conseiller introuvable.")
        appointment.counsellor_id = counsellor_id

    for field, value in changes.items():
        if value is not None:
            setattr(appointment, field, value)

    return _commit(db, appointment)


def record_feedback(db: Session, appointment_id: uuid.UUID, data: FeedbackRequest, actor: Principal) -> Appointment:
    """Avis après séance : note élève ou note conseiller selon l'appelant."""
    appointment = get_appointment(db, appointment_id, actor)
    _check_version(appointment, data.version)
    if appointment.status != COMPLETED:
        raise InvalidInputError("Un avis ne peut être donné qu'après une séance terminée.")

    if actor.is_student:
        appointment.student_rating = data.rating
        appointment.student_comments = data.comments
    else:
        appointment.counsellor_rating = data.rating
        appointment.counsellor_comments = data.comments

    return _commit(db, appointment)


def delete_appointment(db: Session, appointment_id: uuid.UUID, actor: Principal) -> None:
    """Suppression définitive (admin). Les compteurs de l'élève sont recalculés."""
    appointment = get_appointment(db, appointment_id, actor)
    student_id = appointment.student_id

    db.delete(appointment)
    db.flush()
    student_service.recount_counters(db, student_id)
    db.commit()
    logger.info("Rendez-vous %s supprimé", appointment_id)


# --- Lectures ---

def list_appointments(db: Session, params: query_service.ListParams, actor: Principal) -> Page[AppointmentResponse]:
    """Liste paginée ; un élève ne reçoit que ses propres rendez-vous."""
    scope = actor.id if actor.is_student else None
    stmt = query_service.build_appointment_query(params, student_scope=scope)
    records, pagination = query_service.paginate(
        db, stmt, params, query_service.APPOINTMENT_SORT_FIELDS, Appointment.id
    )
    return Page[AppointmentResponse](records=to_responses(db, records), pagination=pagination)


def list_pending(db: Session) -> list[Appointment]:
    """Demandes en attente de confirmation, les plus proches en premier."""
    return db.execute(
        select(Appointment)
        .where(Appointment.status.in_(AWAITING_CONFIRMATION))
        .order_by(Appointment.requested_date, Appointment.created_at)
    ).scalars().all()


def list_today(db: Session, today: Optional[date] = None) -> list[Appointment]:
    """Séances confirmées ou en cours aujourd'hui."""
    start_day, end_day = query_service.day_bounds(today or date.today())
    return db.execute(
        select(Appointment)
        .where(
            Appointment.confirmed_date >= start_day,
            Appointment.confirmed_date < end_day,
            Appointment.status.in_([CONFIRMED, IN_PROGRESS]),
        )
        .order_by(Appointment.confirmed_time)
    ).scalars().all()


def list_upcoming(db: Session, days: int = 7, today: Optional[date] = None) -> list[Appointment]:
    """Séances confirmées dans les `days` prochains jours."""
    start_day = today or date.today()
    return db.execute(
        select(Appointment)
        .where(
            Appointment.confirmed_date >= start_day,
            Appointment.confirmed_date <= start_day + timedelta(days=days),
            Appointment.status == CONFIRMED,
        )
        .order_by(Appointment.confirmed_date, Appointment.confirmed_time)
    ).scalars().all()


# --- Réponses ---

def _student_ref(student: Optional[Student]) -> Optional[StudentRef]:
    if student is None:
        return None
    return StudentRef(
        id=student.id,
        student_id=student.student_code,
        name=f"{student.first_name} {student.last_name}",
        email=student.email,
        phone=student.phone,
    )


def _counsellor_ref(admin: Optional[Admin]) -> Optional[CounsellorRef]:
    if admin is None:
        return None
    return CounsellorRef(id=admin.id, name=admin.name, email=admin.email)


def to_response(
    appointment: Appointment,
    student: Optional[Student] = None,
    counsellor: Optional[Admin] = None,
) -> AppointmentResponse:
    """Construit le schéma de réponse (détails, notes, communication, avis regroupés)."""
    return AppointmentResponse(
        id=appointment.id,
        student_id=appointment.student_id,
        student=_student_ref(student),
        counsellor=_counsellor_ref(counsellor),
        appointment_details=AppointmentDetailsOut(
            requested_date=appointment.requested_date,
            requested_time=appointment.requested_time,
            confirmed_date=appointment.confirmed_date,
            confirmed_time=appointment.confirmed_time,
            duration=appointment.duration,
            type=appointment.type,
            mode=appointment.mode,
            priority=appointment.priority,
        ),
        reason=appointment.reason,
        student_concerns=appointment.student_concerns,
        status=appointment.status,
        session_notes=SessionNotesOut(
            pre_session_notes=appointment.pre_session_notes,
            session_summary=appointment.session_summary,
            action_items=appointment.action_items or [],
            follow_up_required=bool(appointment.follow_up_required),
            follow_up_date=appointment.follow_up_date,
            recommendations=appointment.recommendations,
            next_steps=appointment.next_steps,
        ),
        communication=CommunicationOut(
            email_sent=bool(appointment.email_sent),
            email_sent_date=appointment.email_sent_date,
            reminder_sent=bool(appointment.reminder_sent),
            reminder_sent_date=appointment.reminder_sent_date,
            confirmation_sent=bool(appointment.confirmation_sent),
            confirmation_sent_date=appointment.confirmation_sent_date,
        ),
        feedback=FeedbackOut(
            student_rating=appointment.student_rating,
            student_comments=appointment.student_comments,
            counsellor_rating=appointment.counsellor_rating,
            counsellor_comments=appointment.counsellor_comments,
        ),
        metadata=MetadataOut(
            requested_by=appointment.requested_by,
            urgency_level=appointment.urgency_level,
            tags=appointment.tags or [],
        ),
        version=appointment.version,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def to_detailed_response(db: Session, appointment: Appointment) -> AppointmentResponse:
    """Réponse avec élève et conseiller chargés."""
    student = db.get(Student, appointment.student_id)
    counsellor = db.get(Admin, appointment.counsellor_id) if appointment.counsellor_id else None
    return to_response(appointment, student, counsellor)


def to_responses(db: Session, appointments: list[Appointment]) -> list[AppointmentResponse]:
    """Réponses d'une liste : élèves et conseillers chargés en deux requêtes."""
    if not appointments:
        return []

    student_ids = {a.student_id for a in appointments}
    counsellor_ids = {a.counsellor_id for a in appointments if a.counsellor_id}

    students = {
        s.id: s for s in db.execute(select(Student).where(Student.id.in_(student_ids))).scalars().all()
    }
    counsellors = {}
    if counsellor_ids:
        counsellors = {
            c.id: c for c in db.execute(select(Admin).where(Admin.id.in_(counsellor_ids))).scalars().all()
        }

    return [
        to_response(a, students.get(a.student_id), counsellors.get(a.counsellor_id))
        for a in appointments
    ]
