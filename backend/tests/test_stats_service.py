"""
Tests unitaires pour les agrégats des tableaux de bord.
"""

import uuid
from datetime import date, datetime
from unittest.mock import MagicMock

from counseling.models.appointment import Appointment
from counseling.principal import Principal
from counseling.services.stats_service import (
    calendar,
    completion_rate,
    month_range,
    trend_start,
    weekly_buckets,
)


def make_principal(role="admin") -> Principal:
    return Principal(id=uuid.uuid4(), email=f"{role}@school.edu", role=role, account=MagicMock())


def make_appointment(day: date, time: str, student_id=None) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        student_id=student_id or uuid.uuid4(),
        requested_date=day,
        requested_time=time,
        status="Pending",
        type="Career Guidance",
    )


def test_taux_de_realisation():
    assert completion_rate(0, 0) == 0.0
    assert completion_rate(1, 3) == 33.33
    assert completion_rate(4, 4) == 100.0


def test_semaines_iso_triees():
    buckets = weekly_buckets([date(2026, 5, 4), date(2026, 5, 5), date(2026, 5, 18)])
    assert [(b.week, b.count) for b in buckets] == [(19, 2), (21, 1)]


def test_bornes_du_mois():
    assert month_range(2026, 2) == (date(2026, 2, 1), date(2026, 3, 1))
    assert month_range(2026, 12) == (date(2026, 12, 1), date(2027, 1, 1))


def test_tendance_alignee_sur_les_mois():
    assert trend_start(date(2026, 10, 18)) == datetime(2026, 5, 1)
    assert trend_start(date(2026, 3, 31)) == datetime(2025, 10, 1)
    assert trend_start(date(2026, 1, 1), months=1) == datetime(2026, 1, 1)


def test_calendrier_groupe_par_jour():
    appointments = [
        make_appointment(date(2026, 5, 4), "10:00 AM"),
        make_appointment(date(2026, 5, 4), "02:00 PM"),
        make_appointment(date(2026, 5, 12), "09:00 AM"),
    ]
    db = MagicMock()
    db.execute.return_value.scalars.return_value.all.return_value = appointments

    result = calendar(db, make_principal(), month=5, year=2026)

    assert result.month == 5
    assert [(d.date, d.count) for d in result.daily_appointments] == [
        (date(2026, 5, 4), 2),
        (date(2026, 5, 12), 1),
    ]


def test_calendrier_eleve_restreint_a_ses_rendez_vous():
    db = MagicMock()
    db.execute.return_value.scalars.return_value.all.return_value = []
    student = make_principal("student")

    calendar(db, student, month=5, year=2026)

    stmt = db.execute.call_args.args[0]
    compiled = stmt.compile()
    assert "appointments.student_id =" in str(compiled)
    assert student.id in compiled.params.values()
