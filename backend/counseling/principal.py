"""
Principal authentifié transmis explicitement aux routes et services.
"""

import uuid
from dataclasses import dataclass
from typing import Any

from counseling.models.admin import ADMIN_ROLES


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    email: str
    role: str  # student, admin, counsellor
    account: Any  # Student ou Admin, rechargé depuis la base à chaque requête

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_staff(self) -> bool:
        return self.role in ADMIN_ROLES
