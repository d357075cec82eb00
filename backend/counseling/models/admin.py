"""
Modèle SQLAlchemy pour les administrateurs et conseillers.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from counseling.database import Base

ADMIN_ROLES = ("admin", "counsellor")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)  # toujours en minuscules
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="counsellor")  # admin, counsellor
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
