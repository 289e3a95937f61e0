"""
Point d'entrée principal de l'API SchoolHub.
Démarrage : uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Enregistre tous les modèles dans Base.metadata avant les routers
import app.models  # noqa: F401
from app.config import settings
from app.database import init_db
from app.exceptions import AppError
from app.routers import chats, classes, contacts, exercises, grades, notifications, progress, schools, subjects, users
from app.services import attachment_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie : dossier des pièces jointes et, en développement, création des tables."""
    attachment_storage.ensure_upload_dir()
    if settings.CREATE_TABLES:
        init_db()
        logger.info("Tables créées ou déjà présentes")
    yield


app = FastAPI(
    title="SchoolHub API",
    description="API de gestion scolaire : classes, exercices, notes, notifications et tuteur IA",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(users.router)
app.include_router(schools.router)
app.include_router(subjects.router)
app.include_router(classes.router)
app.include_router(exercises.router)
app.include_router(progress.router)
app.include_router(grades.router)
app.include_router(notifications.router)
app.include_router(chats.router)
app.include_router(contacts.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Erreurs métier : code HTTP porté par l'exception, corps {message, error}."""
    if exc.status_code >= 500:
        logger.error("%s %s : %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": exc.error},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Corps ou paramètres invalides : 400 avec le détail champ par champ."""
    details = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"message": "Données invalides.", "error": details},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "SchoolHub API", "version": "0.1.0"}
