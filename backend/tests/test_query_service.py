"""
Tests unitaires de la couche de requêtes : filtres, restriction au périmètre
de l'élève, tri et pagination.
"""

import math
import uuid
from datetime import date
from unittest.mock import MagicMock

import pytest

from counseling.errors import InvalidInputError
from counseling.models.appointment import Appointment
from counseling.services.query_service import (
    APPOINTMENT_SORT_FIELDS,
    ListParams,
    build_appointment_query,
    build_student_query,
    day_bounds,
    paginate,
)


# --- Helpers ---

def compiled(stmt):
    c = stmt.compile()
    return str(c), c.params


def make_paginate_db(total, records):
    """Premier execute : comptage ; second : enregistrements."""
    count_result = MagicMock()
    count_result.scalar.return_value = total
    records_result = MagicMock()
    records_result.scalars.return_value.all.return_value = records
    db = MagicMock()
    db.execute.side_effect = [count_result, records_result]
    return db


# --- Restriction au périmètre ---

def test_eleve_toujours_restreint_a_ses_rendez_vous():
    student_id = uuid.uuid4()
    params = ListParams(status="Pending", type="Career Guidance", search="bob")

    sql, values = compiled(build_appointment_query(params, student_scope=student_id))

    assert "appointments.student_id = " in sql
    assert student_id in values.values()


def test_admin_sans_restriction():
    sql, _ = compiled(build_appointment_query(ListParams()))
    assert "appointments.student_id =" not in sql


def test_eleve_restreint_a_son_dossier():
    student_id = uuid.uuid4()
    sql, values = compiled(build_student_query(ListParams(risk_level="High"), student_scope=student_id))
    assert "students.id = " in sql
    assert student_id in values.values()


# --- Filtres ---

def test_recherche_jointure_sur_eleve():
    sql, values = compiled(build_appointment_query(ListParams(search=" alice ")))
    assert "JOIN students" in sql
    assert "%alice%" in values.values()


def test_filtre_date_intervalle_demi_ouvert():
    day = date(2026, 5, 4)
    sql, values = compiled(build_appointment_query(ListParams(date=day)))
    assert "appointments.requested_date >=" in sql
    assert "appointments.requested_date <" in sql
    assert day in values.values()
    assert date(2026, 5, 5) in values.values()


def test_filtres_eleves_classe_et_risque():
    sql, values = compiled(build_student_query(ListParams(current_class="12th", risk_level="High", status="Active")))
    assert "12th" in values.values()
    assert "High" in values.values()
    assert "Active" in values.values()


def test_day_bounds():
    assert day_bounds(date(2026, 12, 31)) == (date(2026, 12, 31), date(2027, 1, 1))


# --- Tri et pagination ---

def test_tri_inconnu_refuse():
    db = make_paginate_db(0, [])
    params = ListParams(sort_by="password")
    with pytest.raises(InvalidInputError):
        paginate(db, build_appointment_query(params), params, APPOINTMENT_SORT_FIELDS, Appointment.id)
    db.execute.assert_not_called()


@pytest.mark.parametrize("total,limit", [(0, 10), (1, 10), (10, 10), (25, 10), (101, 100)])
def test_nombre_de_pages(total, limit):
    db = make_paginate_db(total, [])
    params = ListParams(limit=limit)

    _, pagination = paginate(db, build_appointment_query(params), params, APPOINTMENT_SORT_FIELDS, Appointment.id)

    assert pagination.pages == math.ceil(total / limit)
    assert pagination.total == total
    assert pagination.limit == limit


def test_page_au_dela_de_la_derniere_renvoie_liste_vide():
    db = make_paginate_db(5, [])
    params = ListParams(page=4, limit=10)

    records, pagination = paginate(
        db, build_appointment_query(params), params, APPOINTMENT_SORT_FIELDS, Appointment.id
    )

    assert records == []
    assert pagination.current == 4
    assert pagination.pages == 1


def test_offset_calcule_depuis_la_page():
    assert ListParams(page=3, limit=20).offset == 40
