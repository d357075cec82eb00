"""
Schémas Pydantic pour l'authentification (login, inscription, mot de passe).
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, field_validator

from counseling.schemas.common import CamelModel

UserType = Literal["student", "admin"]

MIN_PASSWORD_LENGTH = 6


def _check_password_length(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
    return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str
    user_type: UserType = "admin"

    @field_validator("password")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Le mot de passe est obligatoire.")
        return v


class SignupRequest(CamelModel):
    """
    Inscription. Pour un élève, seuls email et mot de passe sont obligatoires
    (le profil est complété ensuite) ; un compte admin exige un nom.
    """
    name: Optional[str] = None
    email: EmailStr
    password: str
    user_type: UserType = "student"
    role: Literal["admin", "counsellor"] = "counsellor"

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password_length(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password_length(v)


class UserSummary(CamelModel):
    """Vue publique d'un principal (élève ou admin) renvoyée par /auth."""
    id: uuid.UUID
    name: str
    email: str
    role: str
    student_id: Optional[str] = None
    profile_complete: Optional[bool] = None
    last_login: Optional[datetime] = None


class AuthData(CamelModel):
    token: str
    user: UserSummary
    user_type: UserType


class MeData(CamelModel):
    user: UserSummary
