"""
Tests d'intégration API pour les rendez-vous.
Testent les URLs, les rôles, la validation, l'enveloppe des réponses
et le déclenchement de la notification de confirmation.
"""

import uuid
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from counseling.errors import ConflictError, InvalidTransitionError
from counseling.models.appointment import Appointment
from counseling.schemas.common import Page, Pagination
from counseling.services.appointment_service import to_response

SERVICE = "counseling.routers.appointments.appointment_service"
NOTIFY = "counseling.routers.appointments.notification_service.notify_confirmation"


# --- Helpers ---

def tomorrow() -> date:
    return date.today() + timedelta(days=1)


def make_appointment(status="Pending", student_id=None, **kwargs) -> Appointment:
    values = dict(
        id=uuid.uuid4(),
        student_id=student_id or uuid.uuid4(),
        counsellor_id=None,
        requested_date=tomorrow(),
        requested_time="10:00 AM",
        duration=60,
        type="Academic Counseling",
        mode="In-Person",
        priority="Medium",
        reason="Choix d'orientation",
        status=status,
        requested_by="Student",
        urgency_level="Normal",
        version=1,
    )
    values.update(kwargs)
    return Appointment(**values)


def request_payload(**details) -> dict:
    payload = {
        "appointmentDetails": {
            "requestedDate": tomorrow().isoformat(),
            "requestedTime": "10:00 AM",
            "type": "Academic Counseling",
        },
        "reason": "Choix d'orientation",
    }
    payload["appointmentDetails"].update(details)
    return payload


@pytest.fixture(autouse=True)
def no_related_records(mock_db):
    """Réponses détaillées sans élève ni conseiller chargés."""
    mock_db.get.return_value = None


# ============================================================
# POST /api/appointments
# ============================================================

def test_demande_par_un_eleve(as_student, student_principal):
    """Scénario : demande élève → 201, Pending, sans conseiller."""
    appointment = make_appointment(student_id=student_principal.id)
    with patch(f"{SERVICE}.request_appointment", return_value=appointment) as create:
        response = as_student.post("/api/appointments", json=request_payload())

    assert response.status_code == 201
    data = response.json()["data"]["appointment"]
    assert data["status"] == "Pending"
    assert data["counsellor"] is None
    assert data["studentId"] == str(student_principal.id)
    assert create.call_args.args[2] is student_principal


def test_demande_date_passee(as_student):
    response = as_student.post(
        "/api/appointments",
        json=request_payload(requestedDate=(date.today() - timedelta(days=1)).isoformat()),
    )
    assert response.status_code == 400
    assert "passé" in response.text


def test_demande_type_inconnu(as_student):
    response = as_student.post("/api/appointments", json=request_payload(type="Astrologie"))
    assert response.status_code == 400


def test_demande_duree_hors_limites(as_student):
    response = as_student.post("/api/appointments", json=request_payload(duration=240))
    assert response.status_code == 400


def test_demande_motif_vide(as_student):
    payload = request_payload()
    payload["reason"] = "   "
    response = as_student.post("/api/appointments", json=payload)
    assert response.status_code == 400


def test_demande_sans_authentification(client):
    response = client.post("/api/appointments", json=request_payload())
    assert response.status_code == 401


# ============================================================
# PATCH /api/appointments/{id}/confirm
# ============================================================

def test_confirmation_par_admin_declenche_l_email(as_admin):
    """Scénario : confirmation → Confirmed, confirmationSent, email en arrière-plan."""
    appointment = make_appointment(
        "Confirmed", confirmed_date=tomorrow(), confirmed_time="11:00 AM", confirmation_sent=True,
    )
    with patch(f"{SERVICE}.confirm", return_value=appointment), patch(NOTIFY) as notify:
        response = as_admin.patch(f"/api/appointments/{appointment.id}/confirm", json={
            "confirmedDate": tomorrow().isoformat(),
            "confirmedTime": "11:00 AM",
        })

    assert response.status_code == 200
    data = response.json()["data"]["appointment"]
    assert data["status"] == "Confirmed"
    assert data["appointmentDetails"]["confirmedTime"] == "11:00 AM"
    assert data["communication"]["confirmationSent"] is True
    notify.assert_called_once_with(appointment.id)


def test_confirmation_refusee_pour_un_eleve(as_student):
    with patch(f"{SERVICE}.confirm") as confirm, patch(NOTIFY) as notify:
        response = as_student.patch(f"/api/appointments/{uuid.uuid4()}/confirm", json={
            "confirmedDate": tomorrow().isoformat(),
            "confirmedTime": "11:00 AM",
        })
    assert response.status_code == 403
    confirm.assert_not_called()
    notify.assert_not_called()


def test_confirmation_d_un_rendez_vous_termine(as_admin):
    """Scénario : confirmer un rendez-vous Completed → 409, aucun email."""
    with patch(f"{SERVICE}.confirm", side_effect=InvalidTransitionError("Completed", "Confirmed")), \
            patch(NOTIFY) as notify:
        response = as_admin.patch(f"/api/appointments/{uuid.uuid4()}/confirm", json={
            "confirmedDate": tomorrow().isoformat(),
            "confirmedTime": "11:00 AM",
        })

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert "Completed → Confirmed" in response.json()["message"]
    notify.assert_not_called()


def test_confirmation_version_perimee(as_admin):
    with patch(f"{SERVICE}.confirm", side_effect=ConflictError()) as confirm, patch(NOTIFY):
        response = as_admin.patch(f"/api/appointments/{uuid.uuid4()}/confirm", json={
            "confirmedDate": tomorrow().isoformat(),
            "confirmedTime": "11:00 AM",
            "version": 2,
        })
    assert response.status_code == 409
    assert confirm.call_args.args[5] == 2


# ============================================================
# Autres transitions
# ============================================================

def test_cloture_sans_corps(as_admin):
    appointment = make_appointment("Completed", confirmed_date=tomorrow(), confirmed_time="11:00 AM")
    with patch(f"{SERVICE}.complete", return_value=appointment) as complete:
        response = as_admin.patch(f"/api/appointments/{appointment.id}/complete")
    assert response.status_code == 200
    assert response.json()["data"]["appointment"]["status"] == "Completed"
    assert complete.call_args.args[2].session_summary is None


def test_cloture_avec_notes(as_admin):
    appointment = make_appointment("Completed", confirmed_date=tomorrow(), confirmed_time="11:00 AM")
    with patch(f"{SERVICE}.complete", return_value=appointment) as complete:
        response = as_admin.patch(f"/api/appointments/{appointment.id}/complete", json={
            "sessionSummary": "Plan établi", "actionItems": ["Lire le guide"], "followUpRequired": True,
        })
    assert response.status_code == 200
    session = complete.call_args.args[2]
    assert session.session_summary == "Plan établi"
    assert session.action_items == ["Lire le guide"]


def test_annulation_par_l_eleve(as_student, student_principal):
    appointment = make_appointment("Cancelled", student_id=student_principal.id,
                                   pre_session_notes="Appointment cancelled")
    with patch(f"{SERVICE}.cancel", return_value=appointment) as cancel:
        response = as_student.patch(f"/api/appointments/{appointment.id}/cancel")
    assert response.status_code == 200
    assert cancel.call_args.args[2] is None
    assert cancel.call_args.args[3] is student_principal


def test_report_date_passee(as_student):
    response = as_student.patch(f"/api/appointments/{uuid.uuid4()}/reschedule", json={
        "newDate": (date.today() - timedelta(days=2)).isoformat(), "newTime": "10:00 AM",
    })
    assert response.status_code == 400


def test_demarrage_reserve_au_personnel(as_student):
    response = as_student.patch(f"/api/appointments/{uuid.uuid4()}/start")
    assert response.status_code == 403


def test_statut_manuel_cible_invalide(as_admin):
    response = as_admin.patch(f"/api/appointments/{uuid.uuid4()}/status", json={"status": "No-Show"})
    assert response.status_code == 400


def test_statut_manuel_confirmed_notifie(as_admin):
    pending = make_appointment("Pending")
    confirmed = make_appointment("Confirmed", id=pending.id, confirmed_date=tomorrow(), confirmed_time="10:00 AM")
    with patch(f"{SERVICE}.get_appointment", return_value=pending), \
            patch(f"{SERVICE}.set_status", return_value=confirmed), \
            patch(NOTIFY) as notify:
        response = as_admin.patch(f"/api/appointments/{pending.id}/status", json={"status": "Confirmed"})

    assert response.status_code == 200
    notify.assert_called_once_with(pending.id)


def test_avis_note_hors_limites(as_student):
    response = as_student.put(f"/api/appointments/{uuid.uuid4()}/feedback", json={"rating": 6})
    assert response.status_code == 400


# ============================================================
# GET /api/appointments
# ============================================================

def test_liste_eleve_restreinte(as_student, student_principal):
    """Scénario : un élève liste ses rendez-vous ; le service reçoit son principal."""
    own = make_appointment(student_id=student_principal.id)
    page = Page(records=[to_response(own)], pagination=Pagination(current=1, pages=1, total=1, limit=10))
    with patch(f"{SERVICE}.list_appointments", return_value=page) as list_mock:
        response = as_student.get("/api/appointments?status=Pending&sortBy=requestedDate&sortOrder=asc")

    assert response.status_code == 200
    body = response.json()["data"]
    assert all(r["studentId"] == str(student_principal.id) for r in body["records"])
    assert body["pagination"] == {"current": 1, "pages": 1, "total": 1, "limit": 10}
    params = list_mock.call_args.args[1]
    assert params.status == "Pending"
    assert params.sort_by == "requestedDate"
    assert params.sort_order == "asc"
    assert list_mock.call_args.args[2] is student_principal


def test_liste_page_vide(as_admin):
    page = Page(records=[], pagination=Pagination(current=9, pages=2, total=15, limit=10))
    with patch(f"{SERVICE}.list_appointments", return_value=page):
        response = as_admin.get("/api/appointments?page=9")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["data"]["records"] == []


@pytest.mark.parametrize("query", ["page=0", "limit=0", "limit=101", "sortOrder=up"])
def test_liste_parametres_invalides(as_admin, query):
    response = as_admin.get(f"/api/appointments?{query}")
    assert response.status_code == 400


def test_vues_du_personnel_refusees_aux_eleves(as_student):
    for path in ("pending", "today", "upcoming"):
        assert as_student.get(f"/api/appointments/{path}").status_code == 403


def test_demandes_en_attente(as_admin):
    with patch(f"{SERVICE}.list_pending", return_value=[make_appointment()]):
        response = as_admin.get("/api/appointments/pending")
    assert response.status_code == 200
    assert len(response.json()["data"]["appointments"]) == 1


# ============================================================
# DELETE /api/appointments/{id}
# ============================================================

def test_suppression_par_admin(as_admin):
    with patch(f"{SERVICE}.delete_appointment") as delete:
        response = as_admin.delete(f"/api/appointments/{uuid.uuid4()}")
    assert response.status_code == 200
    delete.assert_called_once()


def test_suppression_refusee_pour_un_eleve(as_student):
    response = as_student.delete(f"/api/appointments/{uuid.uuid4()}")
    assert response.status_code == 403
