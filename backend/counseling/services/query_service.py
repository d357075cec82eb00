"""
Construction des requêtes de liste : filtres, recherche, tri, pagination
et restriction au périmètre de l'appelant.

Un élève ne voit jamais que ses propres rendez-vous et son propre dossier,
quels que soient les filtres transmis : la restriction est ajoutée après
les filtres et ne peut pas être élargie.
"""

import datetime as dt
import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from counseling.errors import InvalidInputError
from counseling.models.appointment import Appointment
from counseling.models.student import Student
from counseling.schemas.common import Pagination

APPOINTMENT_SORT_FIELDS = {
    "createdAt": Appointment.created_at,
    "updatedAt": Appointment.updated_at,
    "requestedDate": Appointment.requested_date,
    "confirmedDate": Appointment.confirmed_date,
    "status": Appointment.status,
    "type": Appointment.type,
    "priority": Appointment.priority,
    "duration": Appointment.duration,
}

STUDENT_SORT_FIELDS = {
    "createdAt": Student.created_at,
    "updatedAt": Student.updated_at,
    "firstName": Student.first_name,
    "lastName": Student.last_name,
    "email": Student.email,
    "studentId": Student.student_code,
    "currentClass": Student.current_class,
    "riskLevel": Student.risk_level,
    "lastLogin": Student.last_login,
}


@dataclass
class ListParams:
    """Paramètres de liste communs (GET /appointments, GET /students)."""
    page: int = 1
    limit: int = 10
    search: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    date: Optional[dt.date] = None
    risk_level: Optional[str] = None
    current_class: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def day_bounds(day: dt.date) -> tuple[dt.date, dt.date]:
    """Intervalle semi-ouvert [jour 00:00, lendemain 00:00)."""
    return day, day + dt.timedelta(days=1)


def student_search_clause(term: str):
    """Recherche insensible à la casse (sous-chaîne) sur nom, email, téléphone et identifiant."""
    pattern = f"%{term.strip()}%"
    return or_(
        Student.first_name.ilike(pattern),
        Student.last_name.ilike(pattern),
        (Student.first_name + " " + Student.last_name).ilike(pattern),
        Student.email.ilike(pattern),
        Student.phone.ilike(pattern),
        Student.student_code.ilike(pattern),
    )


def build_appointment_query(params: ListParams, student_scope=None) -> Select:
    """
    Requête des rendez-vous filtrés.
    `student_scope` : identifiant de l'élève appelant, ou None pour un admin.
    """
    stmt = select(Appointment)

    if params.search:
        stmt = stmt.join(Student, Student.id == Appointment.student_id).where(
            student_search_clause(params.search)
        )
    if params.status:
        stmt = stmt.where(Appointment.status == params.status)
    if params.type:
        stmt = stmt.where(Appointment.type == params.type)
    if params.priority:
        stmt = stmt.where(Appointment.priority == params.priority)
    if params.date:
        start, end = day_bounds(params.date)
        stmt = stmt.where(Appointment.requested_date >= start, Appointment.requested_date < end)

    if student_scope is not None:
        stmt = stmt.where(Appointment.student_id == student_scope)
    return stmt


def build_student_query(params: ListParams, student_scope=None) -> Select:
    """Requête des élèves filtrés (status = statut de scolarité, risk_level, classe)."""
    stmt = select(Student)

    if params.search:
        stmt = stmt.where(student_search_clause(params.search))
    if params.status:
        stmt = stmt.where(Student.status == params.status)
    if params.risk_level:
        stmt = stmt.where(Student.risk_level == params.risk_level)
    if params.current_class:
        stmt = stmt.where(Student.current_class == params.current_class)

    if student_scope is not None:
        stmt = stmt.where(Student.id == student_scope)
    return stmt


def order_clause(params: ListParams, sort_fields: dict, id_column):
    column = sort_fields.get(params.sort_by)
    if column is None:
        raise InvalidInputError(
            f"Tri impossible sur '{params.sort_by}'. Champs acceptés : {', '.join(sort_fields)}"
        )
    if params.sort_order == "asc":
        return column.asc(), id_column.asc()
    return column.desc(), id_column.desc()


def paginate(db: Session, stmt: Select, params: ListParams, sort_fields: dict, id_column):
    """
    Exécute la requête paginée et retourne (enregistrements, Pagination).
    Une page au-delà de la dernière renvoie une liste vide, pas une erreur.
    """
    ordering = order_clause(params, sort_fields, id_column)

    total = db.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar() or 0

    records = db.execute(
        stmt.order_by(*ordering).offset(params.offset).limit(params.limit)
    ).scalars().all()

    pagination = Pagination(
        current=params.page,
        pages=math.ceil(total / params.limit),
        total=total,
        limit=params.limit,
    )
    return records, pagination
