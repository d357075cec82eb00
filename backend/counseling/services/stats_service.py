"""
Agrégats des tableaux de bord (GET /stats/*).

Pour un élève, toutes les statistiques sont restreintes à son propre dossier
et à ses propres rendez-vous.
"""

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import extract, func, select
from sqlalchemy.orm import Session

from counseling.models.appointment import Appointment
from counseling.models.student import Student
from counseling.principal import Principal
from counseling.schemas.stats import (
    AppointmentStats,
    CalendarDay,
    CalendarEntry,
    CalendarStats,
    CountBucket,
    DashboardOverview,
    DashboardStats,
    MonthBucket,
    StudentStats,
    WeekBucket,
)
from counseling.services import query_service
from counseling.services.appointment_workflow import COMPLETED, CONFIRMED, PENDING


TREND_MONTHS = 6
RECENT_APPOINTMENT_DAYS = 7
RECENT_REGISTRATION_DAYS = 30


def _appointment_filters(actor: Principal) -> list:
    return [Appointment.student_id == actor.id] if actor.is_student else []


def _student_filters(actor: Principal) -> list:
    return [Student.id == actor.id] if actor.is_student else []


def _count(db: Session, column, *filters) -> int:
    return db.execute(select(func.count(column)).where(*filters)).scalar() or 0


def _count_by(db: Session, column, *filters, skip_null: bool = False) -> list[CountBucket]:
    """Effectifs groupés par valeur de colonne, du plus fréquent au moins fréquent."""
    stmt = select(column, func.count()).where(*filters).group_by(column).order_by(func.count().desc())
    if skip_null:
        stmt = stmt.where(column.isnot(None))
    return [CountBucket(key=key, count=count) for key, count in db.execute(stmt).all()]


def completion_rate(completed: int, total: int) -> float:
    """Pourcentage arrondi à 2 décimales ; 0 quand il n'y a aucun rendez-vous."""
    if total == 0:
        return 0.0
    return round(completed / total * 100, 2)


def weekly_buckets(days: list[date]) -> list[WeekBucket]:
    """Regroupe des dates par numéro de semaine ISO, dans l'ordre croissant."""
    counts = Counter(d.isocalendar()[1] for d in days)
    return [WeekBucket(week=week, count=counts[week]) for week in sorted(counts)]


def month_range(year: int, month: int) -> tuple[date, date]:
    """Premier jour du mois et premier jour du mois suivant."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def trend_start(today: date, months: int = TREND_MONTHS) -> datetime:
    """Premier jour du mois situé `months - 1` mois avant le mois courant."""
    index = today.year * 12 + today.month - 1 - (months - 1)
    return datetime(index // 12, index % 12 + 1, 1)


def dashboard(db: Session, actor: Principal, today: Optional[date] = None) -> DashboardStats:
    today = today or date.today()
    appt_filters = _appointment_filters(actor)
    student_filters = _student_filters(actor)

    day_start, day_end = query_service.day_bounds(today)
    todays = _count(
        db, Appointment.id, *appt_filters,
        Appointment.requested_date >= day_start, Appointment.requested_date < day_end,
    )
    week_ago = datetime.combine(today - timedelta(days=RECENT_APPOINTMENT_DAYS), datetime.min.time())

    overview = DashboardOverview(
        total_students=_count(db, Student.id, *student_filters),
        active_students=_count(db, Student.id, *student_filters, Student.status == "Active"),
        total_appointments=_count(db, Appointment.id, *appt_filters),
        pending_appointments=_count(db, Appointment.id, *appt_filters, Appointment.status == PENDING),
        confirmed_appointments=_count(db, Appointment.id, *appt_filters, Appointment.status == CONFIRMED),
        completed_appointments=_count(db, Appointment.id, *appt_filters, Appointment.status == COMPLETED),
        todays_appointments=todays,
        high_risk_students=_count(db, Student.id, *student_filters, Student.risk_level == "High"),
        recent_appointments=_count(db, Appointment.id, *appt_filters, Appointment.created_at >= week_ago),
    )

    # Tendance mensuelle sur les 6 derniers mois, mois courant inclus
    since = trend_start(today)
    year_col = extract("year", Appointment.created_at)
    month_col = extract("month", Appointment.created_at)
    trend_rows = db.execute(
        select(year_col, month_col, func.count())
        .where(*appt_filters, Appointment.created_at >= since)
        .group_by(year_col, month_col)
        .order_by(year_col, month_col)
    ).all()

    return DashboardStats(
        overview=overview,
        appointment_types=_count_by(db, Appointment.type, *appt_filters),
        monthly_trend=[MonthBucket(year=int(y), month=int(m), count=c) for y, m, c in trend_rows],
    )


def student_stats(db: Session, actor: Principal, today: Optional[date] = None) -> StudentStats:
    today = today or date.today()
    filters = _student_filters(actor)
    since = datetime.combine(today - timedelta(days=RECENT_REGISTRATION_DAYS), datetime.min.time())

    return StudentStats(
        status_stats=_count_by(db, Student.status, *filters),
        risk_stats=_count_by(db, Student.risk_level, *filters),
        class_stats=_count_by(db, Student.current_class, *filters, skip_null=True),
        board_stats=_count_by(db, Student.board, *filters, skip_null=True),
        recent_registrations=_count(db, Student.id, *filters, Student.created_at >= since),
        total=_count(db, Student.id, *filters),
    )


def appointment_stats(db: Session, actor: Principal, today: Optional[date] = None) -> AppointmentStats:
    today = today or date.today()
    filters = _appointment_filters(actor)

    month_start, month_end = month_range(today.year, today.month)
    month_days = db.execute(
        select(Appointment.requested_date).where(
            *filters,
            Appointment.requested_date >= month_start,
            Appointment.requested_date < month_end,
        )
    ).scalars().all()

    total = _count(db, Appointment.id, *filters)
    completed = _count(db, Appointment.id, *filters, Appointment.status == COMPLETED)

    return AppointmentStats(
        status_stats=_count_by(db, Appointment.status, *filters),
        type_stats=_count_by(db, Appointment.type, *filters),
        priority_stats=_count_by(db, Appointment.priority, *filters),
        weekly_stats=weekly_buckets(month_days),
        completion_rate=completion_rate(completed, total),
        total=total,
    )


def calendar(db: Session, actor: Principal, month: Optional[int] = None, year: Optional[int] = None) -> CalendarStats:
    """Rendez-vous du mois regroupés par jour (date demandée), jours sans rendez-vous omis."""
    today = date.today()
    month = month or today.month
    year = year or today.year
    start, end = month_range(year, month)

    appointments = db.execute(
        select(Appointment)
        .where(
            *_appointment_filters(actor),
            Appointment.requested_date >= start,
            Appointment.requested_date < end,
        )
        .order_by(Appointment.requested_date, Appointment.requested_time)
    ).scalars().all()

    by_day = defaultdict(list)
    for a in appointments:
        by_day[a.requested_date].append(
            CalendarEntry(id=a.id, time=a.requested_time, status=a.status, type=a.type, student_id=a.student_id)
        )

    return CalendarStats(
        month=month,
        year=year,
        daily_appointments=[
            CalendarDay(date=day, count=len(entries), appointments=entries)
            for day, entries in sorted(by_day.items())
        ],
    )
