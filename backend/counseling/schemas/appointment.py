"""
Schémas Pydantic pour les rendez-vous.

Chaque requête de mutation accepte un champ facultatif `version` : s'il est
fourni et ne correspond plus à la version stockée, la requête est rejetée (409).
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator

from counseling.models.appointment import (
    APPOINTMENT_MODES,
    APPOINTMENT_PRIORITIES,
    APPOINTMENT_TYPES,
    REQUESTERS,
    URGENCY_LEVELS,
)
from counseling.schemas.common import CamelModel
from counseling.services.appointment_workflow import MANUAL_TARGETS


def _check_choice(v: Optional[str], allowed: tuple, label: str) -> Optional[str]:
    if v is not None and v not in allowed:
        raise ValueError(f"{label} invalide. Valeurs acceptées : {', '.join(allowed)}")
    return v


def _check_time(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.strip():
        raise ValueError("L'heure ne peut pas être vide.")
    return v.strip()


def _check_not_past(v: Optional[date]) -> Optional[date]:
    if v is not None and v < date.today():
        raise ValueError("La date ne peut pas être dans le passé.")
    return v


class VersionedRequest(CamelModel):
    version: Optional[int] = None


# --- Entrées ---

class AppointmentDetailsIn(CamelModel):
    requested_date: date
    requested_time: str = Field(max_length=20)
    duration: int = Field(default=60, ge=30, le=180)
    type: str
    mode: str = "In-Person"
    priority: str = "Medium"

    @field_validator("requested_date")
    @classmethod
    def not_past(cls, v: date) -> date:
        return _check_not_past(v)

    @field_validator("requested_time")
    @classmethod
    def valid_time(cls, v: str) -> str:
        return _check_time(v)

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        return _check_choice(v, APPOINTMENT_TYPES, "Type")

    @field_validator("mode")
    @classmethod
    def valid_mode(cls, v: str) -> str:
        return _check_choice(v, APPOINTMENT_MODES, "Mode")

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: str) -> str:
        return _check_choice(v, APPOINTMENT_PRIORITIES, "Priorité")


class AppointmentCreate(CamelModel):
    """
    Demande de rendez-vous (POST /appointments).
    `student` est ignoré pour un élève (toujours lui-même) et obligatoire pour un admin.
    """
    student: Optional[uuid.UUID] = None
    appointment_details: AppointmentDetailsIn
    reason: str = Field(max_length=500)
    student_concerns: Optional[str] = Field(default=None, max_length=1000)
    requested_by: str = "Student"
    urgency_level: str = "Normal"
    tags: List[str] = []

    @field_validator("reason")
    @classmethod
    def reason_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le motif du rendez-vous est obligatoire.")
        return v.strip()

    @field_validator("requested_by")
    @classmethod
    def valid_requester(cls, v: str) -> str:
        return _check_choice(v, REQUESTERS, "Demandeur")

    @field_validator("urgency_level")
    @classmethod
    def valid_urgency(cls, v: str) -> str:
        return _check_choice(v, URGENCY_LEVELS, "Urgence")


class AppointmentUpdate(VersionedRequest):
    """Champs hors statut modifiables (PUT /appointments/{id})."""
    counsellor: Optional[uuid.UUID] = None
    duration: Optional[int] = Field(default=None, ge=30, le=180)
    type: Optional[str] = None
    mode: Optional[str] = None
    priority: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=500)
    student_concerns: Optional[str] = Field(default=None, max_length=1000)
    urgency_level: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, APPOINTMENT_TYPES, "Type")

    @field_validator("mode")
    @classmethod
    def valid_mode(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, APPOINTMENT_MODES, "Mode")

    @field_validator("priority")
    @classmethod
    def valid_priority(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, APPOINTMENT_PRIORITIES, "Priorité")

    @field_validator("urgency_level")
    @classmethod
    def valid_urgency(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, URGENCY_LEVELS, "Urgence")

    @field_validator("reason")
    @classmethod
    def reason_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le motif du rendez-vous est obligatoire.")
        return v.strip() if v else v


class ConfirmRequest(VersionedRequest):
    confirmed_date: date
    confirmed_time: str = Field(max_length=20)

    @field_validator("confirmed_time")
    @classmethod
    def valid_time(cls, v: str) -> str:
        return _check_time(v)


class CompleteRequest(VersionedRequest):
    """Données de séance : les champs absents ne modifient pas les notes existantes."""
    session_summary: Optional[str] = None
    action_items: Optional[List[str]] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[date] = None
    recommendations: Optional[str] = None
    next_steps: Optional[str] = None


class CancelRequest(VersionedRequest):
    reason: Optional[str] = Field(default=None, max_length=500)


class RescheduleRequest(VersionedRequest):
    new_date: date
    new_time: str = Field(max_length=20)

    @field_validator("new_date")
    @classmethod
    def not_past(cls, v: date) -> date:
        return _check_not_past(v)

    @field_validator("new_time")
    @classmethod
    def valid_time(cls, v: str) -> str:
        return _check_time(v)


class StatusUpdateRequest(VersionedRequest):
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        return _check_choice(v, MANUAL_TARGETS, "Statut")


class FeedbackRequest(VersionedRequest):
    rating: int = Field(ge=1, le=5)
    comments: Optional[str] = Field(default=None, max_length=1000)


# --- Sorties ---

class StudentRef(CamelModel):
    id: uuid.UUID
    student_id: Optional[str]
    name: str
    email: str
    phone: str


class CounsellorRef(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class AppointmentDetailsOut(CamelModel):
    requested_date: date
    requested_time: str
    confirmed_date: Optional[date]
    confirmed_time: Optional[str]
    duration: int
    type: str
    mode: str
    priority: str


class SessionNotesOut(CamelModel):
    pre_session_notes: Optional[str]
    session_summary: Optional[str]
    action_items: List[str]
    follow_up_required: bool
    follow_up_date: Optional[date]
    recommendations: Optional[str]
    next_steps: Optional[str]


class CommunicationOut(CamelModel):
    email_sent: bool
    email_sent_date: Optional[datetime]
    reminder_sent: bool
    reminder_sent_date: Optional[datetime]
    confirmation_sent: bool
    confirmation_sent_date: Optional[datetime]


class FeedbackOut(CamelModel):
    student_rating: Optional[int]
    student_comments: Optional[str]
    counsellor_rating: Optional[int]
    counsellor_comments: Optional[str]


class MetadataOut(CamelModel):
    requested_by: str
    urgency_level: str
    tags: List[str]


class AppointmentResponse(CamelModel):
    id: uuid.UUID
    student_id: uuid.UUID
    student: Optional[StudentRef]
    counsellor: Optional[CounsellorRef]
    appointment_details: AppointmentDetailsOut
    reason: str
    student_concerns: Optional[str]
    status: str
    session_notes: SessionNotesOut
    communication: CommunicationOut
    feedback: FeedbackOut
    metadata: MetadataOut
    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class AppointmentData(CamelModel):
    appointment: AppointmentResponse


class AppointmentListData(CamelModel):
    appointments: List[AppointmentResponse]
