"""
Router pour les dossiers élèves.
Les admins et conseillers gèrent tous les dossiers ; un élève ne consulte
et ne complète que le sien (/students/me).
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.dependencies import list_params, require_staff, require_student
from counseling.principal import Principal
from counseling.schemas.common import ApiResponse, Page
from counseling.schemas.student import (
    StudentCreate,
    StudentData,
    StudentNoteCreate,
    StudentNoteResponse,
    StudentProfileUpdate,
    StudentResponse,
    StudentUpdate,
)
from counseling.services import student_service
from counseling.services.query_service import ListParams

router = APIRouter(prefix="/api/students", tags=["Élèves"])


@router.get("", response_model=ApiResponse[Page[StudentResponse]], summary="Lister les élèves")
def list_students(
    params: ListParams = Depends(list_params),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """
    Liste paginée. Filtres : search (nom, email, téléphone, identifiant),
    status, riskLevel, class. Tri : sortBy / sortOrder.
    """
    return ApiResponse(data=student_service.list_students(db, params))


@router.get("/me", response_model=ApiResponse[StudentData], summary="Mon dossier")
def get_my_profile(db: Session = Depends(get_db), principal: Principal = Depends(require_student)):
    notes = student_service.get_notes(db, principal.id)
    return ApiResponse(data=StudentData(student=student_service.to_response(principal.account, notes)))


@router.put("/me", response_model=ApiResponse[StudentData], summary="Compléter mon profil")
def update_my_profile(
    data: StudentProfileUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Met à jour les blocs fournis ; profileComplete est recalculé."""
    student = student_service.update_own_profile(db, principal.account, data)
    return ApiResponse(message="Profil mis à jour.", data=StudentData(student=student_service.to_response(student)))


@router.get("/{student_id}", response_model=ApiResponse[StudentData], summary="Détail d'un élève")
def get_student(student_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(require_staff)):
    student = student_service.get_student(db, student_id)
    notes = student_service.get_notes(db, student_id)
    return ApiResponse(data=StudentData(student=student_service.to_response(student, notes)))


@router.post("", response_model=ApiResponse[StudentData], status_code=201, summary="Créer un élève")
def create_student(data: StudentCreate, db: Session = Depends(get_db), principal: Principal = Depends(require_staff)):
    student = student_service.create_student(db, data)
    return ApiResponse(message="Élève créé.", data=StudentData(student=student_service.to_response(student)))


@router.put("/{student_id}", response_model=ApiResponse[StudentData], summary="Modifier un élève")
def update_student(
    student_id: uuid.UUID,
    data: StudentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    """Seuls les champs fournis sont modifiés."""
    student = student_service.update_student(db, student_id, data)
    return ApiResponse(message="Élève mis à jour.", data=StudentData(student=student_service.to_response(student)))


@router.delete("/{student_id}", response_model=ApiResponse[None], summary="Supprimer un élève")
def delete_student(student_id: uuid.UUID, db: Session = Depends(get_db), principal: Principal = Depends(require_staff)):
    """Suppression définitive ; rendez-vous et notes sont supprimés en cascade."""
    student_service.delete_student(db, student_id)
    return ApiResponse(message="Élève supprimé.")


@router.post(
    "/{student_id}/notes",
    response_model=ApiResponse[StudentNoteResponse],
    status_code=201,
    summary="Ajouter une note de suivi",
)
def add_note(
    student_id: uuid.UUID,
    data: StudentNoteCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_staff),
):
    note = student_service.add_note(db, student_id, data.notes, principal.id)
    return ApiResponse(message="Note ajoutée.", data=StudentNoteResponse.model_validate(note))
