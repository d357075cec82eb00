"""
Point d'entrée principal de l'API de gestion des rendez-vous de conseil.
Démarrage : uvicorn counseling.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import counseling.models  # noqa: F401  enregistre tous les modèles dans Base.metadata avant les routers
from counseling.config import settings
from counseling.database import SessionLocal, init_db
from counseling.errors import AppError
from counseling.routers import appointments, auth, email, stats, students
from counseling.schemas.common import FieldError
from counseling.services.auth_service import ensure_default_admin

logger = logging.getLogger(__name__)


def bootstrap() -> None:
    """Crée les tables si demandé puis le compte administrateur par défaut."""
    if settings.AUTO_CREATE_TABLES:
        init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie : initialisation de la base au démarrage."""
    try:
        bootstrap()
    except SQLAlchemyError as exc:
        # L'API démarre quand même : /api/health reste joignable
        logger.error("Initialisation de la base impossible : %s", exc, exc_info=True)
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="API de gestion des élèves et des rendez-vous de conseil",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)
app.include_router(students.router)
app.include_router(appointments.router)
app.include_router(email.router)
app.include_router(stats.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Erreurs métier levées par les services et les dépendances."""
    if exc.status_code >= 500:
        logger.error("%s %s : %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Validation des entrées : 400 avec la liste des champs en erreur."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append(FieldError(field=".".join(location), message=error.get("msg", "")).model_dump())
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Données invalides.", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour que la réponse 500
    passe par CORSMiddleware et garde le format d'enveloppe.
    Le détail de l'erreur n'est exposé qu'en dehors de la production.
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    content = {"success": False, "message": "Une erreur interne est survenue."}
    if settings.ENV != "production":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"success": True, "status": "ok", "service": settings.APP_NAME, "version": "1.0.0"}
