"""
Router d'authentification : connexion, inscription, profil courant,
déconnexion et changement de mot de passe.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.dependencies import bearer_scheme, get_current_principal, get_optional_principal
from counseling.errors import ForbiddenError, UnauthenticatedError
from counseling.principal import Principal
from counseling.schemas.auth import AuthData, ChangePasswordRequest, LoginRequest, MeData, SignupRequest
from counseling.schemas.common import ApiResponse
from counseling.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["Authentification"])


@router.post("/login", response_model=ApiResponse[AuthData], summary="Se connecter")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """
    Vérifie email + mot de passe pour le type de compte demandé (`student` ou `admin`)
    et retourne un jeton Bearer.
    """
    account = auth_service.verify_credentials(db, data.user_type, data.email, data.password)
    return ApiResponse(
        message="Connexion réussie.",
        data=AuthData(
            token=auth_service.issue_token(account),
            user=auth_service.to_user_summary(account),
            user_type=data.user_type,
        ),
    )


@router.post("/signup", response_model=ApiResponse[AuthData], status_code=201, summary="Créer un compte")
def signup(
    data: SignupRequest,
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
):
    """
    Inscription publique pour les élèves (profil minimal, à compléter ensuite).
    La création d'un compte admin ou conseiller exige le jeton d'un administrateur.
    """
    if data.user_type == "student":
        account = auth_service.create_student_account(db, data.email, data.password, data.name)
    else:
        # Le jeton n'est lu que pour la création d'un compte admin
        principal = get_optional_principal(credentials, db)
        if principal is None:
            raise UnauthenticatedError("Seul un administrateur peut créer un compte admin.")
        if principal.role != "admin":
            raise ForbiddenError("Seul un administrateur peut créer un compte admin.")
        account = auth_service.create_admin_account(db, data.name, data.email, data.password, data.role)

    return ApiResponse(
        message="Compte créé.",
        data=AuthData(
            token=auth_service.issue_token(account),
            user=auth_service.to_user_summary(account),
            user_type=data.user_type,
        ),
    )


@router.get("/me", response_model=ApiResponse[MeData], summary="Compte connecté")
def me(principal: Principal = Depends(get_current_principal)):
    return ApiResponse(data=MeData(user=auth_service.to_user_summary(principal.account)))


@router.post("/logout", response_model=ApiResponse[None], summary="Se déconnecter")
def logout(principal: Principal = Depends(get_current_principal)):
    """Jetons sans état : le client supprime simplement son jeton."""
    return ApiResponse(message="Déconnexion réussie.")


@router.put("/change-password", response_model=ApiResponse[None], summary="Changer de mot de passe")
def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    auth_service.change_password(db, principal.account, data.current_password, data.new_password)
    return ApiResponse(message="Mot de passe modifié.")
