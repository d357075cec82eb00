"""
Service métier pour les dossiers élèves.
Gère la création (avec identifiant STUAAAANNNN), la complétion du profil,
la mise à jour, la suppression, les notes de suivi et les compteurs de séances.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from counseling.config import settings
from counseling.errors import ConflictError, DuplicateEmailError, NotFoundError
from counseling.models.appointment import Appointment
from counseling.models.student import PLACEHOLDER_PHONE, PLACEHOLDER_TEXT, Student, StudentNote
from counseling.schemas.common import Page
from counseling.schemas.student import (
    AcademicInfoOut,
    Address,
    CounselingInfoOut,
    GuardianInfo,
    PersonalInfoOut,
    StudentCreate,
    StudentNoteResponse,
    StudentProfileUpdate,
    StudentResponse,
    StudentUpdate,
)
from counseling.security import hash_password
from counseling.services import query_service
from counseling.services.appointment_workflow import COMPLETED

logger = logging.getLogger(__name__)

PLACEHOLDER_DOB = date(2000, 1, 1)

STUDENT_NOT_FOUND = "Élève introuvable."

_PERSONAL_FIELDS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "email": "email",
    "phone": "phone",
    "date_of_birth": "date_of_birth",
    "gender": "gender",
}
_ADDRESS_FIELDS = ("street", "city", "state", "pincode")
_ACADEMIC_FIELDS = ("current_class", "school", "board", "subjects", "interests", "career_goals")
_GUARDIAN_FIELDS = {
    "name": "guardian_name",
    "relationship": "guardian_relationship",
    "phone": "guardian_phone",
    "email": "guardian_email",
}


def generate_student_code(db: Session, year: Optional[int] = None) -> str:
    """
    Identifiant lisible attribué à la création : préfixe + année + séquence sur 4 chiffres.
    La séquence repart du plus grand identifiant existant pour l'année ;
    le tri par longueur d'abord garde l'ordre numérique au-delà de 9999.
    """
    year = year or date.today().year
    prefix = f"{settings.STUDENT_ID_PREFIX}{year}"
    last_code = db.execute(
        select(Student.student_code)
        .where(Student.student_code.like(f"{prefix}%"))
        .order_by(func.length(Student.student_code).desc(), Student.student_code.desc())
        .limit(1)
    ).scalar()

    sequence = 1
    if last_code:
        try:
            sequence = int(last_code[len(prefix):]) + 1
        except ValueError:
            sequence = 1
    return f"{prefix}{sequence:04d}"


def insert_student(db: Session, student: Student) -> Student:
    """Attribue l'identifiant élève (une seule fois) et persiste le dossier."""
    if not student.student_code:
        student.student_code = generate_student_code(db)
    db.add(student)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        _ensure_email_available(db, student.email)
        raise ConflictError("Identifiant élève déjà attribué entre-temps, réessayez.")
    db.refresh(student)
    return student


def is_profile_complete(student: Student) -> bool:
    """Le profil est complet quand aucune valeur provisoire de l'inscription ne subsiste."""
    return (
        bool(student.phone) and student.phone != PLACEHOLDER_PHONE
        and student.date_of_birth is not None and student.date_of_birth != PLACEHOLDER_DOB
        and bool(student.current_class) and student.current_class != PLACEHOLDER_TEXT
        and bool(student.school) and student.school != PLACEHOLDER_TEXT
    )


def _ensure_email_available(db: Session, email: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    stmt = select(Student.id).where(func.lower(Student.email) == email.lower())
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    if db.execute(stmt).scalar() is not None:
        raise DuplicateEmailError()


def _apply_profile(db: Session, student: Student, data: Union[StudentUpdate, StudentProfileUpdate]) -> None:
    """
    Applique les blocs fournis ; les champs absents ne sont pas modifiés.
    Le schéma élève ne porte ni email ni informations de suivi.
    """
    if data.personal_info is not None:
        personal = data.personal_info.model_dump(exclude_unset=True)
        address = personal.pop("address", None)
        email = personal.pop("email", None)
        if email and email.lower() != student.email:
            _ensure_email_available(db, email, exclude_id=student.id)
            student.email = email.lower()
        for field, value in personal.items():
            if value is not None:
                setattr(student, _PERSONAL_FIELDS[field], value)
        if address:
            for field in _ADDRESS_FIELDS:
                if field in address:
                    setattr(student, field, address[field])

    if data.academic_info is not None:
        for field, value in data.academic_info.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(student, field, value)

    if data.counseling_info is not None:
        counseling = data.counseling_info.model_dump(exclude_unset=True)
        guardian = counseling.pop("parent_guardian_info", None)
        for field, value in counseling.items():
            if value is not None:
                setattr(student, field, value)
        if guardian:
            for field, column in _GUARDIAN_FIELDS.items():
                if field in guardian:
                    setattr(student, column, guardian[field])


def list_students(db: Session, params: query_service.ListParams, student_scope=None) -> Page[StudentResponse]:
    stmt = query_service.build_student_query(params, student_scope)
    records, pagination = query_service.paginate(
        db, stmt, params, query_service.STUDENT_SORT_FIELDS, Student.id
    )
    return Page[StudentResponse](
        records=[to_response(s) for s in records],
        pagination=pagination,
    )


def get_student(db: Session, student_id: uuid.UUID) -> Student:
    """Retourne l'élève ou lève NotFoundError."""
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError(STUDENT_NOT_FOUND)
    return student


def create_student(db: Session, data: StudentCreate) -> Student:
    """Création manuelle d'un dossier complet par un admin."""
    personal = data.personal_info
    email = personal.email.lower()
    _ensure_email_available(db, email)

    address = personal.address or Address()
    student = Student(
        first_name=personal.first_name,
        last_name=personal.last_name,
        email=email,
        phone=personal.phone,
        date_of_birth=personal.date_of_birth,
        gender=personal.gender,
        street=address.street,
        city=address.city,
        state=address.state,
        pincode=address.pincode,
        current_class=data.academic_info.current_class or PLACEHOLDER_TEXT,
        school=data.academic_info.school or PLACEHOLDER_TEXT,
        board=data.academic_info.board,
        subjects=data.academic_info.subjects or [],
        interests=data.academic_info.interests or [],
        career_goals=data.academic_info.career_goals,
        password_hash=hash_password(data.password) if data.password else None,
        status=data.status,
        role="student",
    )
    if data.counseling_info is not None:
        _apply_profile(db, student, StudentUpdate(counseling_info=data.counseling_info))
    student.profile_complete = is_profile_complete(student)

    student = insert_student(db, student)
    logger.info("Dossier élève créé : %s (%s)", student.student_code, student.id)
    return student


def update_student(db: Session, student_id: uuid.UUID, data: StudentUpdate) -> Student:
    """Mise à jour par un admin (profil, statut de scolarité, activation)."""
    student = get_student(db, student_id)
    _apply_profile(db, student, data)
    if data.status is not None:
        student.status = data.status
    if data.is_active is not None:
        student.is_active = data.is_active
    student.profile_complete = is_profile_complete(student)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmailError()
    db.refresh(student)
    return student


def update_own_profile(db: Session, student: Student, data: StudentProfileUpdate) -> Student:
    """
    Complétion / mise à jour du profil par l'élève (PUT /students/me).
    L'email de connexion et le niveau de risque ne sont pas modifiables ici.
    """
    _apply_profile(db, student, data)
    student.profile_complete = is_profile_complete(student)
    db.commit()
    db.refresh(student)
    return student


def delete_student(db: Session, student_id: uuid.UUID) -> None:
    """Supprime définitivement un élève. Ses rendez-vous et notes sont supprimés en cascade."""
    student = get_student(db, student_id)
    db.delete(student)
    db.commit()
    logger.info("Dossier élève supprimé : %s", student_id)


def add_note(db: Session, student_id: uuid.UUID, notes: str, counsellor_id: Optional[uuid.UUID]) -> StudentNote:
    get_student(db, student_id)
    note = StudentNote(student_id=student_id, counsellor_id=counsellor_id, notes=notes)
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def get_notes(db: Session, student_id: uuid.UUID) -> list[StudentNote]:
    return db.execute(
        select(StudentNote)
        .where(StudentNote.student_id == student_id)
        .order_by(StudentNote.created_at.desc())
    ).scalars().all()


def record_completed_session(student: Student, completed_at: Optional[datetime] = None) -> None:
    """
    Seul point de mise à jour incrémentale des compteurs de séances.
    Appelé dans la même transaction que la clôture du rendez-vous.
    """
    student.total_appointments = (student.total_appointments or 0) + 1
    student.completed_appointments = (student.completed_appointments or 0) + 1
    student.last_appointment_date = completed_at or datetime.now()


def recount_counters(db: Session, student_id: uuid.UUID) -> None:
    """
    Recalcule les compteurs depuis la table des rendez-vous (réconciliation
    après suppression d'un rendez-vous). Ne commit pas.
    """
    student = db.get(Student, student_id)
    if student is None:
        return

    completed_count, last_date = db.execute(
        select(func.count(Appointment.id), func.max(Appointment.updated_at))
        .where(Appointment.student_id == student_id, Appointment.status == COMPLETED)
    ).one()

    student.total_appointments = completed_count or 0
    student.completed_appointments = completed_count or 0
    student.last_appointment_date = last_date


def to_response(student: Student, notes: Optional[list[StudentNote]] = None) -> StudentResponse:
    """Construit le schéma de réponse (profil regroupé en blocs)."""
    return StudentResponse(
        id=student.id,
        student_id=student.student_code,
        role=student.role,
        personal_info=PersonalInfoOut(
            first_name=student.first_name,
            last_name=student.last_name,
            full_name=f"{student.first_name} {student.last_name}",
            email=student.email,
            phone=student.phone,
            date_of_birth=student.date_of_birth,
            gender=student.gender,
            address=Address(
                street=student.street,
                city=student.city,
                state=student.state,
                pincode=student.pincode,
            ),
        ),
        academic_info=AcademicInfoOut(
            current_class=student.current_class,
            school=student.school,
            board=student.board,
            subjects=student.subjects or [],
            interests=student.interests or [],
            career_goals=student.career_goals,
        ),
        counseling_info=CounselingInfoOut(
            total_appointments=student.total_appointments or 0,
            completed_appointments=student.completed_appointments or 0,
            last_appointment_date=student.last_appointment_date,
            risk_level=student.risk_level,
            special_needs=student.special_needs,
            parent_guardian_info=GuardianInfo.model_construct(
                name=student.guardian_name,
                relationship=student.guardian_relationship,
                phone=student.guardian_phone,
                email=student.guardian_email,
            ),
            counseling_notes=[
                StudentNoteResponse(
                    id=n.id, notes=n.notes, counsellor_id=n.counsellor_id, created_at=n.created_at
                )
                for n in (notes or [])
            ],
        ),
        status=student.status,
        profile_complete=bool(student.profile_complete),
        is_active=bool(student.is_active),
        last_login=student.last_login,
        created_at=student.created_at,
        updated_at=student.updated_at,
    )
