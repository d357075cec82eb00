"""
Tests unitaires pour le service d'identité (comptes, identifiants, jetons).
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest

from counseling.errors import DuplicateEmailError, InvalidInputError, UnauthenticatedError
from counseling.models.admin import Admin
from counseling.models.student import Student
from counseling.security import decode_access_token, hash_password, verify_password
from counseling.services.auth_service import (
    change_password,
    create_admin_account,
    create_student_account,
    ensure_default_admin,
    issue_token,
    resolve_account,
    to_user_summary,
    verify_credentials,
)


# --- Helpers ---

def make_db_mock(found=None):
    """db.execute(...).scalar() retourne `found` (recherche par email)."""
    db = MagicMock()
    db.execute.return_value.scalar.return_value = found
    return db


def make_student(password="pass123", is_active=True) -> Student:
    return Student(
        id=uuid.uuid4(),
        student_code="STU20260001",
        role="student",
        first_name="Alice",
        last_name="Martin",
        email="alice@school.edu",
        password_hash=hash_password(password) if password else None,
        is_active=is_active,
        profile_complete=False,
    )


def make_admin(password="admin123", role="admin") -> Admin:
    return Admin(
        id=uuid.uuid4(),
        name="Counsellor Admin",
        email="counsellor@school.edu",
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )


# --- verify_credentials ---

def test_connexion_reussie_met_a_jour_last_login():
    student = make_student()
    db = make_db_mock(found=student)

    account = verify_credentials(db, "student", "Alice@School.edu", "pass123")

    assert account is student
    assert student.last_login is not None
    db.commit.assert_called_once()


def test_connexion_compte_inconnu():
    db = make_db_mock(found=None)
    with pytest.raises(UnauthenticatedError):
        verify_credentials(db, "admin", "inconnu@school.edu", "pass123")


def test_connexion_mauvais_mot_de_passe():
    db = make_db_mock(found=make_student())
    with pytest.raises(UnauthenticatedError) as exc:
        verify_credentials(db, "student", "alice@school.edu", "mauvais")
    assert exc.value.status_code == 401
    db.commit.assert_not_called()


def test_connexion_compte_sans_mot_de_passe():
    db = make_db_mock(found=make_student(password=None))
    with pytest.raises(UnauthenticatedError) as exc:
        verify_credentials(db, "student", "alice@school.edu", "pass123")
    assert "non configuré" in exc.value.message


def test_connexion_compte_desactive():
    db = make_db_mock(found=make_student(is_active=False))
    with pytest.raises(UnauthenticatedError):
        verify_credentials(db, "student", "alice@school.edu", "pass123")


# --- change_password ---

def test_changement_mot_de_passe_invalide_l_ancien():
    student = make_student(password="ancien1")
    db = MagicMock()

    change_password(db, student, "ancien1", "nouveau1")

    assert verify_password("nouveau1", student.password_hash)
    assert not verify_password("ancien1", student.password_hash)
    db.commit.assert_called_once()


def test_changement_mot_de_passe_actuel_incorrect():
    student = make_student(password="ancien1")
    with pytest.raises(InvalidInputError):
        change_password(MagicMock(), student, "faux", "nouveau1")


# --- Création de comptes ---

def test_inscription_eleve_profil_minimal():
    db = make_db_mock(found=None)
    with patch("counseling.services.auth_service.student_service.insert_student", side_effect=lambda db, s: s):
        student = create_student_account(db, "Alice@School.edu", "pass123", "Alice Martin")

    assert student.email == "alice@school.edu"
    assert student.role == "student"
    assert student.profile_complete is False
    assert student.first_name == "Alice"
    assert student.last_name == "Martin"
    assert verify_password("pass123", student.password_hash)


def test_inscription_eleve_sans_nom():
    db = make_db_mock(found=None)
    with patch("counseling.services.auth_service.student_service.insert_student", side_effect=lambda db, s: s):
        student = create_student_account(db, "bob@school.edu", "pass123")
    assert student.first_name == "bob"


def test_inscription_eleve_email_deja_pris():
    db = make_db_mock(found=make_student())
    with pytest.raises(DuplicateEmailError):
        create_student_account(db, "alice@school.edu", "pass123")


def test_creation_admin_email_deja_pris():
    db = make_db_mock(found=make_admin())
    with pytest.raises(DuplicateEmailError):
        create_admin_account(db, "Autre", "counsellor@school.edu", "admin123")
    db.add.assert_not_called()


def test_creation_admin_role_invalide():
    with pytest.raises(InvalidInputError):
        create_admin_account(MagicMock(), "Nom", "x@school.edu", "admin123", role="student")


def test_creation_admin_sans_nom():
    with pytest.raises(InvalidInputError):
        create_admin_account(make_db_mock(), None, "x@school.edu", "admin123")


def test_admin_par_defaut_non_recree_si_existant():
    db = make_db_mock(found=uuid.uuid4())
    assert ensure_default_admin(db) is None
    db.add.assert_not_called()


def test_admin_par_defaut_cree_si_absent():
    db = make_db_mock(found=None)
    admin = ensure_default_admin(db)
    assert admin.role == "admin"
    db.add.assert_called_once()
    db.commit.assert_called_once()


# --- Jetons et principal ---

def test_jeton_emis_porte_email_et_role():
    student = make_student()
    payload = decode_access_token(issue_token(student))
    assert payload["email"].lower() == "alice@school.edu"
    assert payload["role"] == "student"


def test_resolution_du_principal_par_role():
    admin = make_admin()
    db = MagicMock()
    db.get.return_value = admin

    account = resolve_account(db, {"sub": str(admin.id), "role": "admin"})

    assert account is admin
    assert db.get.call_args.args[0] is Admin


def test_resolution_compte_supprime():
    db = MagicMock()
    db.get.return_value = None
    with pytest.raises(UnauthenticatedError):
        resolve_account(db, {"sub": str(uuid.uuid4()), "role": "student"})


def test_resolution_sub_invalide():
    with pytest.raises(UnauthenticatedError):
        resolve_account(MagicMock(), {"sub": "pas-un-uuid", "role": "student"})


def test_resume_utilisateur_eleve_et_admin():
    student_summary = to_user_summary(make_student())
    assert student_summary.role == "student"
    assert student_summary.student_id == "STU20260001"
    assert student_summary.name == "Alice Martin"

    admin_summary = to_user_summary(make_admin(role="counsellor"))
    assert admin_summary.role == "counsellor"
    assert admin_summary.student_id is None
