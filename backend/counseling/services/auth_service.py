"""
Service d'identité : comptes élèves et admins, vérification des identifiants,
changement de mot de passe, émission des jetons et résolution du principal.

Chaque principal porte un rôle explicite (`student`, `admin`, `counsellor`) ;
le rôle n'est jamais déduit de la forme du profil.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from counseling.config import settings
from counseling.errors import DuplicateEmailError, InvalidInputError, UnauthenticatedError
from counseling.models.admin import ADMIN_ROLES, Admin
from counseling.models.student import Student
from counseling.schemas.auth import UserSummary
from counseling.security import create_access_token, hash_password, verify_password
from counseling.services import student_service

logger = logging.getLogger(__name__)

Account = Union[Student, Admin]

STUDENT_ROLE = "student"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, model, email: str) -> Optional[Account]:
    """Recherche insensible à la casse, limitée à un type de principal."""
    return db.execute(
        select(model).where(func.lower(model.email) == normalize_email(email))
    ).scalar()


def create_student_account(db: Session, email: str, password: str, name: Optional[str] = None) -> Student:
    """
    Inscription d'un élève avec un profil minimal.
    Le téléphone, la date de naissance, le genre, la classe et l'école restent
    des valeurs provisoires jusqu'à la complétion du profil (PUT /students/me).
    """
    email = normalize_email(email)
    if find_by_email(db, Student, email) is not None:
        raise DuplicateEmailError()

    if name:
        parts = name.split()
        first_name, last_name = parts[0], " ".join(parts[1:]) or "Student"
    else:
        first_name, last_name = email.split("@")[0], "Student"

    student = Student(
        first_name=first_name[:50],
        last_name=last_name[:50],
        email=email,
        date_of_birth=student_service.PLACEHOLDER_DOB,
        password_hash=hash_password(password),
        role=STUDENT_ROLE,
        profile_complete=False,
    )
    student = student_service.insert_student(db, student)
    logger.info("Compte élève créé : %s (%s)", student.student_code, student.id)
    return student


def create_admin_account(db: Session, name: str, email: str, password: str, role: str = "counsellor") -> Admin:
    """Crée un compte admin ou conseiller. Lève DuplicateEmailError si l'email est pris."""
    if role not in ADMIN_ROLES:
        raise InvalidInputError(f"Rôle invalide. Valeurs acceptées : {', '.join(ADMIN_ROLES)}")
    if not name:
        raise InvalidInputError("Le nom est obligatoire pour un compte admin.")

    email = normalize_email(email)
    if find_by_email(db, Admin, email) is not None:
        raise DuplicateEmailError()

    admin = Admin(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.add(admin)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmailError()
    db.refresh(admin)
    logger.info("Compte %s créé : %s", role, admin.id)
    return admin


def verify_credentials(db: Session, user_type: str, email: str, password: str) -> Account:
    """
    Vérifie email + mot de passe pour le type de compte demandé.
    Lève UnauthenticatedError si le compte est absent, sans mot de passe,
    désactivé ou si le mot de passe ne correspond pas.
    En cas de succès, met à jour last_login.
    """
    model = Student if user_type == STUDENT_ROLE else Admin
    account = find_by_email(db, model, email)

    if account is None:
        raise UnauthenticatedError("Identifiants invalides.")
    if not account.password_hash:
        raise UnauthenticatedError(
            "Compte non configuré pour la connexion. Contactez l'administrateur."
        )
    if not verify_password(password, account.password_hash):
        logger.warning("Échec de connexion pour le compte %s", account.id)
        raise UnauthenticatedError("Identifiants invalides.")
    if not account.is_active:
        raise UnauthenticatedError("Ce compte est désactivé.")

    account.last_login = datetime.now()
    db.commit()
    db.refresh(account)
    return account


def change_password(db: Session, account: Account, current_password: str, new_password: str) -> None:
    """Revérifie le mot de passe actuel puis enregistre le nouveau hash."""
    if not verify_password(current_password, account.password_hash):
        raise InvalidInputError("Le mot de passe actuel est incorrect.")

    account.password_hash = hash_password(new_password)
    db.commit()
    logger.info("Mot de passe modifié pour le compte %s", account.id)


def issue_token(account: Account) -> str:
    return create_access_token(account.id, account.email, account.role)


def resolve_account(db: Session, payload: dict) -> Account:
    """
    Recharge le principal désigné par un jeton décodé.
    Un compte supprimé ou désactivé depuis l'émission du jeton est refusé.
    """
    try:
        account_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise UnauthenticatedError("Jeton d'authentification invalide.")

    model = Student if payload.get("role") == STUDENT_ROLE else Admin
    account = db.get(model, account_id)
    if account is None or not account.is_active:
        raise UnauthenticatedError("Aucun compte actif ne correspond à ce jeton.")
    return account


def to_user_summary(account: Account) -> UserSummary:
    if isinstance(account, Student):
        return UserSummary(
            id=account.id,
            name=f"{account.first_name} {account.last_name}",
            email=account.email,
            role=STUDENT_ROLE,
            student_id=account.student_code,
            profile_complete=account.profile_complete,
            last_login=account.last_login,
        )
    return UserSummary(
        id=account.id,
        name=account.name,
        email=account.email,
        role=account.role,
        last_login=account.last_login,
    )


def ensure_default_admin(db: Session) -> Optional[Admin]:
    """
    Crée l'administrateur par défaut (ADMIN_EMAIL / ADMIN_PASSWORD) si aucun admin n'existe.
    Retourne le compte créé, ou None si un admin existait déjà.
    """
    existing = db.execute(select(Admin.id).limit(1)).scalar()
    if existing is not None:
        logger.info("Compte administrateur déjà présent.")
        return None

    admin = create_admin_account(
        db,
        name=settings.ADMIN_NAME,
        email=settings.ADMIN_EMAIL,
        password=settings.ADMIN_PASSWORD,
        role="admin",
    )
    logger.warning(
        "Administrateur par défaut créé (%s) : changez son mot de passe après la première connexion.",
        admin.email,
    )
    return admin
