"""
Schémas Pydantic pour les envois d'emails (confirmation, suivi, rappels).
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator

from counseling.schemas.common import CamelModel


class ConfirmationEmailRequest(CamelModel):
    appointment_id: uuid.UUID
    custom_message: Optional[str] = Field(default=None, max_length=2000)


class FollowUpEmailRequest(CamelModel):
    student_id: uuid.UUID
    subject: Optional[str] = Field(default=None, max_length=255)
    message: str = Field(max_length=5000)
    appointment_id: Optional[uuid.UUID] = None

    @field_validator("message")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le message ne peut pas être vide.")
        return v


class ReminderRequest(CamelModel):
    """Rappels pour les rendez-vous confirmés d'une journée (demain par défaut)."""
    target_date: Optional[date] = None


class EmailSentData(CamelModel):
    sent_to: str
    subject: Optional[str] = None
    sent_at: datetime


class ReminderResult(CamelModel):
    """Rapport d'envoi des rappels pour une journée."""
    target_date: date
    sent_count: int
    already_sent_count: int
    errors: List[str]
