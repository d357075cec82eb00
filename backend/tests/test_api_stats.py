"""
Tests d'intégration API pour les statistiques et la santé de l'API.
"""

from unittest.mock import patch

from counseling.schemas.stats import AppointmentStats, CalendarStats

SERVICE = "counseling.routers.stats.stats_service"


def test_sante(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_statistiques_sans_authentification(client):
    assert client.get("/api/stats/dashboard").status_code == 401


def test_statistiques_rendez_vous_eleve(as_student, student_principal):
    stats = AppointmentStats(
        status_stats=[], type_stats=[], priority_stats=[], weekly_stats=[], completion_rate=50.0, total=2,
    )
    with patch(f"{SERVICE}.appointment_stats", return_value=stats) as compute:
        response = as_student.get("/api/stats/appointments")

    assert response.status_code == 200
    assert response.json()["data"]["completionRate"] == 50.0
    assert compute.call_args.args[1] is student_principal


def test_calendrier_mois_invalide(as_admin):
    assert as_admin.get("/api/stats/calendar?month=13").status_code == 400


def test_calendrier(as_admin):
    with patch(f"{SERVICE}.calendar", return_value=CalendarStats(month=5, year=2026, daily_appointments=[])) as cal:
        response = as_admin.get("/api/stats/calendar?month=5&year=2026")
    assert response.status_code == 200
    assert response.json()["data"]["month"] == 5
    assert cal.call_args.args[2:] == (5, 2026)
