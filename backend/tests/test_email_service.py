"""
Tests unitaires pour l'envoi SMTP (connexion mockée).
"""

import smtplib
from unittest.mock import patch

import pytest

from counseling.config import settings
from counseling.errors import NotificationError
from counseling.services.email_service import send_follow_up_email, verify_connection

SMTP = "counseling.services.email_service.smtplib.SMTP"


def test_envoi_avec_delai_de_connexion():
    with patch(SMTP) as smtp:
        subject = send_follow_up_email("alice@school.edu", "Alice Martin", "Bonjour\nÀ bientôt")

    smtp.assert_called_once_with(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT)
    server = smtp.return_value.__enter__.return_value
    server.send_message.assert_called_once()
    assert subject == f"Suivi - {settings.APP_NAME}"


def test_verification_connexion_meme_delai():
    with patch(SMTP) as smtp:
        verify_connection()
    assert smtp.call_args.kwargs["timeout"] == settings.SMTP_TIMEOUT


def test_serveur_injoignable():
    with patch(SMTP, side_effect=TimeoutError("timed out")):
        with pytest.raises(NotificationError):
            send_follow_up_email("alice@school.edu", "Alice Martin", "Bonjour")


def test_refus_du_serveur():
    with patch(SMTP) as smtp:
        smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        with pytest.raises(NotificationError):
            send_follow_up_email("alice@school.edu", "Alice Martin", "Bonjour")
