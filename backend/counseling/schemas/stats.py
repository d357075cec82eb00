"""
Schémas Pydantic pour les statistiques des tableaux de bord.

Note : datetime est importé en tant que module (dt) pour éviter le conflit de nommage
entre le champ `date` de CalendarDay et le type `datetime.date` dans Pydantic v2.
"""

import datetime as dt
import uuid
from typing import List, Optional

from counseling.schemas.common import CamelModel


class CountBucket(CamelModel):
    """Effectif d'une valeur (statut, type, priorité...)."""
    key: Optional[str]
    count: int


class MonthBucket(CamelModel):
    year: int
    month: int
    count: int


class DashboardOverview(CamelModel):
    total_students: int
    active_students: int
    total_appointments: int
    pending_appointments: int
    confirmed_appointments: int
    completed_appointments: int
    todays_appointments: int
    high_risk_students: int
    recent_appointments: int


class DashboardStats(CamelModel):
    overview: DashboardOverview
    appointment_types: List[CountBucket]
    monthly_trend: List[MonthBucket]


class StudentStats(CamelModel):
    status_stats: List[CountBucket]
    risk_stats: List[CountBucket]
    class_stats: List[CountBucket]
    board_stats: List[CountBucket]
    recent_registrations: int
    total: int


class WeekBucket(CamelModel):
    week: int
    count: int


class AppointmentStats(CamelModel):
    status_stats: List[CountBucket]
    type_stats: List[CountBucket]
    priority_stats: List[CountBucket]
    weekly_stats: List[WeekBucket]
    completion_rate: float
    total: int


class CalendarEntry(CamelModel):
    id: uuid.UUID
    time: str
    status: str
    type: str
    student_id: uuid.UUID


class CalendarDay(CamelModel):
    date: dt.date
    count: int
    appointments: List[CalendarEntry]


class CalendarStats(CamelModel):
    month: int
    year: int
    daily_appointments: List[CalendarDay]
