"""
Schémas Pydantic pour les élèves.

Le profil est exposé en trois blocs (personalInfo, academicInfo, counselingInfo).
Les schémas *Update ont tous leurs champs optionnels : seuls les champs
fournis sont appliqués.
"""

import re
import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from counseling.models.student import BOARDS, GENDERS, RISK_LEVELS, STUDENT_STATUSES
from counseling.schemas.auth import MIN_PASSWORD_LENGTH
from counseling.schemas.common import CamelModel

PHONE_RE = re.compile(r"^[0-9]{10}$")
PINCODE_RE = re.compile(r"^[0-9]{6}$")


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is not None and not PHONE_RE.match(v):
        raise ValueError("Le téléphone doit comporter 10 chiffres.")
    return v


def _check_choice(v: Optional[str], allowed: tuple, label: str) -> Optional[str]:
    if v is not None and v not in allowed:
        raise ValueError(f"{label} invalide. Valeurs acceptées : {', '.join(allowed)}")
    return v


def _check_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.strip():
        raise ValueError("Le champ ne peut pas être vide.")
    return v.strip()


class Address(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    @field_validator("pincode")
    @classmethod
    def valid_pincode(cls, v: Optional[str]) -> Optional[str]:
        if v and not PINCODE_RE.match(v):
            raise ValueError("Le code postal doit comporter 6 chiffres.")
        return v or None


class GuardianInfo(CamelModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v or None)


# --- Entrées ---

class PersonalInfoIn(CamelModel):
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    email: EmailStr
    phone: str
    date_of_birth: date
    gender: str
    address: Optional[Address] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("gender")
    @classmethod
    def valid_gender(cls, v: str) -> str:
        return _check_choice(v, GENDERS, "Genre")


class ProfilePersonalInfo(CamelModel):
    """Identité modifiable par l'élève : l'email de connexion n'en fait pas partie."""
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    @field_validator("gender")
    @classmethod
    def valid_gender(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, GENDERS, "Genre")


class PersonalInfoUpdate(ProfilePersonalInfo):
    model_config = ConfigDict(extra="ignore")

    email: Optional[EmailStr] = None


class AcademicInfoIn(CamelModel):
    current_class: Optional[str] = None
    school: Optional[str] = None
    board: Optional[str] = None
    subjects: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    career_goals: Optional[str] = None

    @field_validator("board")
    @classmethod
    def valid_board(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, BOARDS, "Board")


class ProfileCounselingInfo(CamelModel):
    """Seul le contact du responsable légal est renseigné par l'élève."""
    model_config = ConfigDict(extra="forbid")

    parent_guardian_info: Optional[GuardianInfo] = None


class CounselingInfoIn(ProfileCounselingInfo):
    model_config = ConfigDict(extra="ignore")

    risk_level: Optional[str] = None
    special_needs: Optional[str] = None

    @field_validator("risk_level")
    @classmethod
    def valid_risk(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, RISK_LEVELS, "Niveau de risque")


class StudentCreate(CamelModel):
    """Création d'un élève par un admin (POST /students). Le mot de passe est facultatif."""
    personal_info: PersonalInfoIn
    academic_info: AcademicInfoIn
    counseling_info: Optional[CounselingInfoIn] = None
    password: Optional[str] = None
    status: str = "Active"

    @field_validator("password")
    @classmethod
    def password_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        return _check_choice(v, STUDENT_STATUSES, "Statut")


class StudentProfileUpdate(CamelModel):
    """
    Complétion ou mise à jour du profil par l'élève lui-même (PUT /students/me).
    L'email et les informations de suivi (niveau de risque, besoins particuliers)
    sont refusés : ils relèvent de l'admin.
    """
    model_config = ConfigDict(extra="forbid")

    personal_info: Optional[ProfilePersonalInfo] = None
    academic_info: Optional[AcademicInfoIn] = None
    counseling_info: Optional[ProfileCounselingInfo] = None


class StudentUpdate(CamelModel):
    """Mise à jour par un admin (PUT /students/{id}) : profil complet, statut et activation."""
    personal_info: Optional[PersonalInfoUpdate] = None
    academic_info: Optional[AcademicInfoIn] = None
    counseling_info: Optional[CounselingInfoIn] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        return _check_choice(v, STUDENT_STATUSES, "Statut")


class StudentNoteCreate(CamelModel):
    notes: str = Field(max_length=2000)

    @field_validator("notes")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _check_name(v)


# --- Sorties ---

class StudentNoteResponse(CamelModel):
    id: int
    notes: str
    counsellor_id: Optional[uuid.UUID]
    created_at: Optional[datetime]


class PersonalInfoOut(CamelModel):
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    date_of_birth: date
    gender: str
    address: Address


class AcademicInfoOut(CamelModel):
    current_class: str
    school: str
    board: Optional[str]
    subjects: List[str]
    interests: List[str]
    career_goals: Optional[str]


class CounselingInfoOut(CamelModel):
    total_appointments: int
    completed_appointments: int
    last_appointment_date: Optional[datetime]
    risk_level: str
    special_needs: Optional[str]
    parent_guardian_info: GuardianInfo
    counseling_notes: List[StudentNoteResponse] = []


class StudentResponse(CamelModel):
    id: uuid.UUID
    student_id: Optional[str]
    role: str
    personal_info: PersonalInfoOut
    academic_info: AcademicInfoOut
    counseling_info: CounselingInfoOut
    status: str
    profile_complete: bool
    is_active: bool
    last_login: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class StudentData(CamelModel):
    student: StudentResponse

