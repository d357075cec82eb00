"""
Tests unitaires du hachage des mots de passe et des jetons JWT.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from counseling.config import settings
from counseling.errors import UnauthenticatedError
from counseling.security import create_access_token, decode_access_token, hash_password, verify_password


# --- Mots de passe ---

def test_hash_puis_verification():
    hashed = hash_password("secret1")
    assert hashed != "secret1"
    assert verify_password("secret1", hashed)


def test_mauvais_mot_de_passe_refuse():
    hashed = hash_password("secret1")
    assert not verify_password("secret2", hashed)


def test_deux_hash_differents_pour_le_meme_mot_de_passe():
    assert hash_password("secret1") != hash_password("secret1")


def test_hash_vide_ne_correspond_jamais():
    assert not verify_password("secret1", None)
    assert not verify_password("secret1", "")


def test_hash_corrompu_refuse_sans_exception():
    assert not verify_password("secret1", "pas-un-hash-bcrypt")


def test_mot_de_passe_long_accepte():
    """Au-delà de 72 octets, seuls les 72 premiers comptent (pas d'erreur)."""
    long_password = "é" * 100
    hashed = hash_password(long_password)
    assert verify_password(long_password, hashed)


# --- Jetons ---

def test_jeton_contient_identite_et_role():
    principal_id = uuid.uuid4()
    token = create_access_token(principal_id, "e@x.com", "student")

    payload = decode_access_token(token)
    assert payload["sub"] == str(principal_id)
    assert payload["email"] == "e@x.com"
    assert payload["role"] == "student"
    assert payload["exp"] > payload["iat"]


def test_jeton_expire_refuse():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "role": "admin", "iat": now - timedelta(days=2), "exp": now - timedelta(days=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(UnauthenticatedError) as exc:
        decode_access_token(token)
    assert "expirée" in exc.value.message


def test_jeton_falsifie_refuse():
    token = jwt.encode({"sub": str(uuid.uuid4()), "role": "admin"}, "autre-cle", algorithm="HS256")
    with pytest.raises(UnauthenticatedError):
        decode_access_token(token)


def test_jeton_sans_role_refuse():
    token = jwt.encode({"sub": str(uuid.uuid4())}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    with pytest.raises(UnauthenticatedError):
        decode_access_token(token)


def test_jeton_mal_forme_refuse():
    with pytest.raises(UnauthenticatedError):
        decode_access_token("pas.un.jeton")
