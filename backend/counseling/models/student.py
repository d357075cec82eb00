"""
Modèles SQLAlchemy pour les élèves et les notes de suivi rédigées par les conseillers.

Le profil est stocké à plat ; les schémas Pydantic le regroupent en
personalInfo / academicInfo / counselingInfo pour l'API.
"""

import uuid
from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from counseling.database import Base

# Valeurs posées à l'inscription, en attendant la complétion du profil
PLACEHOLDER_PHONE = "0000000000"
PLACEHOLDER_TEXT = "Not specified"

GENDERS = ("Male", "Female", "Other")
BOARDS = ("CBSE", "ICSE", "State Board", "International", "Other")
RISK_LEVELS = ("Low", "Medium", "High")
STUDENT_STATUSES = ("Active", "Inactive", "Graduated", "Transferred")


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_code = Column(String(20), unique=True, nullable=True)  # Ex: "STU20260001"
    role = Column(String(20), nullable=False, default="student")

    # Informations personnelles
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False)  # toujours en minuscules
    phone = Column(String(10), nullable=False, default=PLACEHOLDER_PHONE)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False, default="Other")  # Male, Female, Other
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(6), nullable=True)

    # Scolarité
    current_class = Column(String(50), nullable=False, default=PLACEHOLDER_TEXT)
    school = Column(String(255), nullable=False, default=PLACEHOLDER_TEXT)
    board = Column(String(20), nullable=True)  # CBSE, ICSE, State Board, International, Other
    subjects = Column(JSON, nullable=False, default=list)
    interests = Column(JSON, nullable=False, default=list)
    career_goals = Column(Text, nullable=True)

    # Suivi (compteurs maintenus par appointment_service)
    total_appointments = Column(Integer, nullable=False, default=0)
    completed_appointments = Column(Integer, nullable=False, default=0)
    last_appointment_date = Column(DateTime, nullable=True)
    risk_level = Column(String(10), nullable=False, default="Low")  # Low, Medium, High
    special_needs = Column(Text, nullable=True)
    guardian_name = Column(String(100), nullable=True)
    guardian_relationship = Column(String(50), nullable=True)
    guardian_phone = Column(String(10), nullable=True)
    guardian_email = Column(String(255), nullable=True)

    # Compte
    password_hash = Column(String(255), nullable=True)  # NULL = pas de connexion possible
    status = Column(String(20), nullable=False, default="Active")  # Active, Inactive, Graduated, Transferred
    profile_complete = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class StudentNote(Base):
    """Note de suivi libre ajoutée par un conseiller sur le dossier d'un élève."""
    __tablename__ = "student_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    counsellor_id = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
