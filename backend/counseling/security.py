"""
Hachage des mots de passe (bcrypt) et jetons d'accès signés (JWT).

Aucun mot de passe en clair n'est stocké ni journalisé : il ne transite que
par hash_password / verify_password.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from counseling.config import settings
from counseling.errors import UnauthenticatedError


# bcrypt ne prend en compte que les 72 premiers octets
BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Hache un mot de passe avec un sel aléatoire (coût = BCRYPT_ROUNDS)."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Compare un mot de passe au hash stocké. Un hash vide ne correspond jamais."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Hash stocké corrompu ou dans un autre format
        return False


def create_access_token(principal_id: uuid.UUID, email: str, role: str) -> str:
    """Émet un jeton signé {sub, email, role} valable ACCESS_TOKEN_EXPIRE_MINUTES."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(principal_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Vérifie signature et expiration du jeton et retourne son contenu.
    Lève UnauthenticatedError si le jeton est expiré, mal formé ou falsifié.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Session expirée. Veuillez vous reconnecter.")
    except jwt.InvalidTokenError:
        raise UnauthenticatedError("Jeton d'authentification invalide.")

    if not payload.get("sub") or not payload.get("role"):
        raise UnauthenticatedError("Jeton d'authentification invalide.")
    return payload
