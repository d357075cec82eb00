"""
Exceptions métier de l'API.

Les services lèvent ces exceptions ; le handler global de main.py les traduit
en réponse JSON `{"success": false, "message": ...}` avec le code HTTP associé.
Elles héritent de ValueError pour rester compatibles avec les `except ValueError`
des appelants existants.
"""

from typing import Optional


class AppError(ValueError):
    status_code = 400
    default_message = "Requête invalide."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(AppError):
    status_code = 400
    default_message = "Données invalides."


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Authentification requise."


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Accès refusé pour ce rôle."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Ressource introuvable."


class DuplicateEmailError(AppError):
    status_code = 409
    default_message = "Un compte avec cet email existe déjà."


class InvalidTransitionError(AppError):
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition interdite : {current} → {target}.")


class ConflictError(AppError):
    """Version périmée : le rendez-vous a été modifié depuis sa lecture."""
    status_code = 409
    default_message = "Le rendez-vous a été modifié entre-temps. Rechargez-le puis réessayez."


class NotificationError(AppError):
    status_code = 502
    default_message = "L'envoi de l'email a échoué."
