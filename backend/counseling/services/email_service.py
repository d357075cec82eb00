"""
Service d'envoi d'emails SMTP : confirmation, rappel et suivi de rendez-vous.
Les échecs de transport sont convertis en NotificationError.
"""

import logging
import smtplib
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from counseling.config import settings
from counseling.errors import NotificationError

logger = logging.getLogger(__name__)


def _layout(title: str, body: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto;">
        <h2 style="color: #2563eb;">{settings.APP_NAME}</h2>
        <h3>{title}</h3>
        {body}
        <hr style="border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #888;">
          Ce message est envoyé par {settings.APP_NAME}. Merci de ne pas le transférer :
          son contenu est confidentiel.
        </p>
      </body>
    </html>
    """


def _session_table(session_date: date, session_time: str, appointment_type: str, mode: str) -> str:
    return f"""
        <table style="background-color: #f3f4f6; padding: 16px; border-radius: 8px; width: 100%;">
          <tr><td><strong>Date :</strong></td><td>{session_date.strftime('%d/%m/%Y')}</td></tr>
          <tr><td><strong>Heure :</strong></td><td>{session_time}</td></tr>
          <tr><td><strong>Type :</strong></td><td>{appointment_type}</td></tr>
          <tr><td><strong>Mode :</strong></td><td>{mode}</td></tr>
        </table>
    """


def _send(to_email: str, subject: str, html_content: str) -> None:
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((settings.SMTP_FROM_NAME, settings.SMTP_FROM))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            if settings.SMTP_USERNAME:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationError(f"Échec de l'envoi de l'email à {to_email} : {exc}") from exc

    logger.info("Email envoyé à %s (%s)", to_email, subject)


def send_confirmation_email(
    to_email: str,
    student_name: str,
    session_date: date,
    session_time: str,
    appointment_type: str,
    mode: str,
    custom_message: Optional[str] = None,
) -> str:
    """Envoie la confirmation d'un rendez-vous. Retourne l'objet de l'email."""
    subject = f"Confirmation de rendez-vous - {settings.APP_NAME}"
    note = ""
    if custom_message:
        note = f"""
        <div style="background-color: #fef3c7; border-left: 4px solid #f59e0b; padding: 12px; margin: 16px 0;">
          <strong>Message du conseiller :</strong>
          <p>{custom_message}</p>
        </div>
        """
    body = f"""
        <p>Bonjour <strong>{student_name}</strong>,</p>
        <p>Votre rendez-vous de conseil est confirmé :</p>
        {_session_table(session_date, session_time, appointment_type, mode)}
        {note}
        <ul>
          <li>Merci d'arriver 10 minutes avant l'heure prévue.</li>
          <li>Pour reporter, prévenez-nous au moins 24 heures à l'avance.</li>
        </ul>
    """
    _send(to_email, subject, _layout("Rendez-vous confirmé", body))
    return subject


def send_reminder_email(
    to_email: str,
    student_name: str,
    session_date: date,
    session_time: str,
    appointment_type: str,
    mode: str,
) -> str:
    subject = f"Rappel de rendez-vous - {settings.APP_NAME}"
    body = f"""
        <p>Bonjour <strong>{student_name}</strong>,</p>
        <p>Nous vous rappelons votre rendez-vous de conseil :</p>
        {_session_table(session_date, session_time, appointment_type, mode)}
    """
    _send(to_email, subject, _layout("Rappel", body))
    return subject


def send_follow_up_email(to_email: str, student_name: str, message: str, subject: Optional[str] = None) -> str:
    """Envoie un message de suivi libre. Objet par défaut : « Suivi - APP_NAME »."""
    subject = subject or f"Suivi - {settings.APP_NAME}"
    paragraphs = "".join(f"<p>{line}</p>" for line in message.splitlines() if line.strip())
    body = f"""
        <p>Bonjour <strong>{student_name}</strong>,</p>
        {paragraphs}
    """
    _send(to_email, subject, _layout("Suivi de votre accompagnement", body))
    return subject


def verify_connection() -> None:
    """Ouvre une connexion SMTP authentifiée sans rien envoyer (POST /email/test)."""
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            if settings.SMTP_USERNAME:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.noop()
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationError(f"Configuration SMTP invalide : {exc}") from exc
