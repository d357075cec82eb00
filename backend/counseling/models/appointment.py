"""
Modèles SQLAlchemy pour les rendez-vous de conseil et l'historique des emails de suivi.
"""

import uuid
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from counseling.database import Base

APPOINTMENT_TYPES = (
    "Academic Counseling",
    "Career Guidance",
    "Personal Counseling",
    "Stress Management",
    "Study Skills",
    "College Preparation",
    "Behavioral Issues",
    "Follow-up Session",
    "Other",
)
APPOINTMENT_MODES = ("In-Person", "Video Call", "Phone Call")
APPOINTMENT_PRIORITIES = ("Low", "Medium", "High", "Urgent")
REQUESTERS = ("Student", "Parent", "Teacher", "Counsellor")
URGENCY_LEVELS = ("Normal", "Urgent", "Emergency")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    counsellor_id = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True, index=True)

    # Planification
    requested_date = Column(Date, nullable=False, index=True)
    requested_time = Column(String(20), nullable=False)
    confirmed_date = Column(Date, nullable=True)
    confirmed_time = Column(String(20), nullable=True)
    duration = Column(Integer, nullable=False, default=60)  # minutes, 30 à 180
    type = Column(String(50), nullable=False)
    mode = Column(String(20), nullable=False, default="In-Person")  # In-Person, Video Call, Phone Call
    priority = Column(String(10), nullable=False, default="Medium")  # Low, Medium, High, Urgent

    reason = Column(String(500), nullable=False)
    student_concerns = Column(String(1000), nullable=True)
    status = Column(String(20), nullable=False, default="Pending", index=True)

    # Notes de séance (renseignées à la clôture)
    pre_session_notes = Column(Text, nullable=True)
    session_summary = Column(Text, nullable=True)
    action_items = Column(JSON, nullable=False, default=list)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(Date, nullable=True)
    recommendations = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)

    # Communication
    email_sent = Column(Boolean, nullable=False, default=False)
    email_sent_date = Column(DateTime, nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_date = Column(DateTime, nullable=True)
    confirmation_sent = Column(Boolean, nullable=False, default=False)
    confirmation_sent_date = Column(DateTime, nullable=True)

    # Retours après séance
    student_rating = Column(Integer, nullable=True)
    student_comments = Column(Text, nullable=True)
    counsellor_rating = Column(Integer, nullable=True)
    counsellor_comments = Column(Text, nullable=True)

    # Métadonnées
    requested_by = Column(String(20), nullable=False, default="Student")  # Student, Parent, Teacher, Counsellor
    urgency_level = Column(String(20), nullable=False, default="Normal")  # Normal, Urgent, Emergency
    tags = Column(JSON, nullable=False, default=list)

    # Verrou optimiste : incrémenté par SQLAlchemy à chaque UPDATE
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'In-Progress', 'Completed', "
            "'Cancelled', 'No-Show', 'Rescheduled')",
            name="appointments_status_check",
        ),
        CheckConstraint(
            "(confirmed_date IS NULL) = (confirmed_time IS NULL)",
            name="appointments_confirmed_pair_check",
        ),
        CheckConstraint("duration BETWEEN 30 AND 180", name="appointments_duration_check"),
    )


class FollowUpEmail(Base):
    """Trace d'un email de suivi envoyé à un élève (lié ou non à un rendez-vous)."""
    __tablename__ = "follow_up_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(UUID(as_uuid=True), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    sent_by = Column(UUID(as_uuid=True), nullable=True)  # admin ou élève
    sent_at = Column(DateTime, server_default=func.now())
