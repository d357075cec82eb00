"""
Orchestration des notifications liées aux rendez-vous.

Flux :
  1. Confirmation d'un rendez-vous : tâche d'arrière-plan lancée après la réponse,
     best-effort (un échec est journalisé, la confirmation reste acquise)
  2. Renvoi explicite d'une confirmation, email de suivi : l'échec est remonté (502)
  3. Rappels de la veille : un email par rendez-vous confirmé non encore rappelé

Les indicateurs de communication (emailSent, reminderSent) sont écrits par un
UPDATE direct : ils n'incrémentent pas la version du rendez-vous, un client qui
vient de confirmer peut donc enchaîner sans conflit.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from counseling.database import SessionLocal
from counseling.errors import ForbiddenError, InvalidInputError, NotificationError
from counseling.models.appointment import Appointment, FollowUpEmail
from counseling.models.student import Student
from counseling.principal import Principal
from counseling.schemas.email import EmailSentData, FollowUpEmailRequest, ReminderResult
from counseling.services import appointment_service, email_service, student_service
from counseling.services.appointment_workflow import CONFIRMED

logger = logging.getLogger(__name__)


def _full_name(student: Student) -> str:
    return f"{student.first_name} {student.last_name}"


def _mark_email_sent(db: Session, appointment_id: uuid.UUID, sent_at: datetime) -> None:
    db.execute(
        update(Appointment)
        .where(Appointment.id == appointment_id)
        .values(email_sent=True, email_sent_date=sent_at)
    )


def _deliver_confirmation(db: Session, appointment: Appointment, custom_message: Optional[str] = None) -> EmailSentData:
    student = student_service.get_student(db, appointment.student_id)
    subject = email_service.send_confirmation_email(
        to_email=student.email,
        student_name=_full_name(student),
        session_date=appointment.confirmed_date or appointment.requested_date,
        session_time=appointment.confirmed_time or appointment.requested_time,
        appointment_type=appointment.type,
        mode=appointment.mode,
        custom_message=custom_message,
    )
    sent_at = datetime.now()
    _mark_email_sent(db, appointment.id, sent_at)
    db.commit()
    return EmailSentData(sent_to=student.email, subject=subject, sent_at=sent_at)


def notify_confirmation(appointment_id: uuid.UUID, session_factory=SessionLocal) -> None:
    """
    Tâche d'arrière-plan (BackgroundTasks) déclenchée après une confirmation.
    Ouvre sa propre session : celle de la requête est déjà fermée.
    """
    db = session_factory()
    try:
        appointment = db.get(Appointment, appointment_id)
        if appointment is None or appointment.status != CONFIRMED:
            logger.info("Confirmation non envoyée : rendez-vous %s absent ou plus confirmé.", appointment_id)
            return
        result = _deliver_confirmation(db, appointment)
        logger.info("Confirmation du rendez-vous %s envoyée à %s", appointment_id, result.sent_to)
    except NotificationError as exc:
        db.rollback()
        logger.error("Email de confirmation non envoyé pour %s : %s", appointment_id, exc.message)
    except Exception as exc:
        db.rollback()
        logger.error("Erreur inattendue lors de la confirmation de %s : %s", appointment_id, exc, exc_info=True)
    finally:
        db.close()


def send_confirmation(
    db: Session,
    appointment_id: uuid.UUID,
    actor: Principal,
    custom_message: Optional[str] = None,
) -> EmailSentData:
    """Renvoi explicite de la confirmation (POST /email/appointment-confirmation)."""
    appointment = appointment_service.get_appointment(db, appointment_id, actor)
    return _deliver_confirmation(db, appointment, custom_message)


def send_follow_up(db: Session, data: FollowUpEmailRequest, actor: Principal) -> EmailSentData:
    """
    Envoie un email de suivi à un élève et le trace dans follow_up_emails.
    Si un rendez-vous est indiqué, il doit appartenir à l'élève et est marqué emailSent.
    """
    if actor.is_student and data.student_id != actor.id:
        raise ForbiddenError("Vous ne pouvez écrire qu'à votre propre dossier.")
    student = student_service.get_student(db, data.student_id)

    if data.appointment_id is not None:
        appointment = appointment_service.get_appointment(db, data.appointment_id, actor)
        if appointment.student_id != student.id:
            raise InvalidInputError("Ce rendez-vous ne concerne pas cet élève.")

    subject = email_service.send_follow_up_email(
        to_email=student.email,
        student_name=_full_name(student),
        message=data.message,
        subject=data.subject,
    )

    sent_at = datetime.now()
    db.add(FollowUpEmail(
        student_id=student.id,
        appointment_id=data.appointment_id,
        subject=subject,
        message=data.message,
        sent_by=actor.id,
        sent_at=sent_at,
    ))
    if data.appointment_id is not None:
        _mark_email_sent(db, data.appointment_id, sent_at)
    db.commit()

    logger.info("Email de suivi envoyé à l'élève %s par %s", student.id, actor.id)
    return EmailSentData(sent_to=student.email, subject=subject, sent_at=sent_at)


def send_reminders(db: Session, target_date: Optional[date] = None) -> ReminderResult:
    """
    Envoie un rappel pour chaque rendez-vous confirmé à la date cible (demain par défaut).

    Règles :
    - rappel déjà envoyé → already_sent_count, aucun nouvel envoi
    - échec SMTP individuel → ajouté dans errors, les autres envois continuent
    """
    target_date = target_date or date.today() + timedelta(days=1)
    result = ReminderResult(target_date=target_date, sent_count=0, already_sent_count=0, errors=[])

    rows = db.execute(
        select(Appointment, Student)
        .join(Student, Student.id == Appointment.student_id)
        .where(Appointment.status == CONFIRMED, Appointment.confirmed_date == target_date)
        .order_by(Appointment.confirmed_time)
    ).all()

    for appointment, student in rows:
        if appointment.reminder_sent:
            result.already_sent_count += 1
            continue
        try:
            email_service.send_reminder_email(
                to_email=student.email,
                student_name=_full_name(student),
                session_date=appointment.confirmed_date,
                session_time=appointment.confirmed_time,
                appointment_type=appointment.type,
                mode=appointment.mode,
            )
        except NotificationError as exc:
            logger.error("Rappel non envoyé pour le rendez-vous %s : %s", appointment.id, exc.message)
            result.errors.append(f"{student.email} : {exc.message}")
            continue

        db.execute(
            update(Appointment)
            .where(Appointment.id == appointment.id)
            .values(reminder_sent=True, reminder_sent_date=datetime.now())
        )
        result.sent_count += 1

    db.commit()
    logger.info(
        "Rappels du %s : %d envoyés, %d déjà envoyés, %d erreurs",
        target_date, result.sent_count, result.already_sent_count, len(result.errors),
    )
    return result


def check_connection() -> None:
    email_service.verify_connection()
