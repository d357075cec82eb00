"""
Router des statistiques pour les tableaux de bord.
Un élève ne voit que les agrégats de son propre dossier.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.dependencies import get_current_principal
from counseling.principal import Principal
from counseling.schemas.common import ApiResponse
from counseling.schemas.stats import AppointmentStats, CalendarStats, DashboardStats, StudentStats
from counseling.services import stats_service

router = APIRouter(prefix="/api/stats", tags=["Statistiques"])


@router.get("/dashboard", response_model=ApiResponse[DashboardStats], summary="Vue d'ensemble")
def dashboard(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return ApiResponse(data=stats_service.dashboard(db, principal))


@router.get("/students", response_model=ApiResponse[StudentStats], summary="Répartition des élèves")
def students(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return ApiResponse(data=stats_service.student_stats(db, principal))


@router.get("/appointments", response_model=ApiResponse[AppointmentStats], summary="Répartition des rendez-vous")
def appointments(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    """Par statut, type et priorité, par semaine du mois courant, et taux de réalisation."""
    return ApiResponse(data=stats_service.appointment_stats(db, principal))


@router.get("/calendar", response_model=ApiResponse[CalendarStats], summary="Calendrier mensuel")
def calendar(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Rendez-vous du mois groupés par jour (mois courant par défaut)."""
    return ApiResponse(data=stats_service.calendar(db, principal, month, year))
