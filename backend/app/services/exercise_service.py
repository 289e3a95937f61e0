"""
Service métier pour les exercices : création par l'enseignant, consultation,
et soumission par l'élève avec correction automatique.

La soumission est un INSERT ... SELECT conditionnel : la tentative n'est écrite
que si le nombre de tentatives existantes est encore sous la limite, dans la
même instruction. Deux soumissions simultanées sur le même créneau se heurtent
à la contrainte uq_progress_attempt.
"""

import uuid
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.exercise import Exercise
from app.models.progress import StudentProgress
from app.models.school_class import SchoolClass
from app.schemas.auth import CurrentUser
from app.schemas.common import PageParams, pagination
from app.schemas.exercise import (
    ExerciseCreate,
    ExerciseDetailResponse,
    ExerciseListResponse,
    ExerciseResponse,
    ExerciseUpdate,
    LatestProgress,
    StudentExerciseItem,
    StudentExerciseListResponse,
    SubmissionRequest,
    SubmissionResponse,
)
from app.schemas.progress import ExerciseProgressResponse
from app.services import scoring
from app.services.access_rules import Action, Resource, ResourceKind, Role, authorize
from app.services.progress_service import progress_to_response

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 50


# --- Création / modification ---

def create_exercise(db: Session, actor: CurrentUser, data: ExerciseCreate) -> ExerciseResponse:
    """
    Crée un exercice pour une classe et une matière que l'enseignant enseigne.
    Les identifiants d'options QCM sont générés ici ; totalPoints est dérivé des questions.
    """
    school_class = db.get(SchoolClass, data.class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")

    authorize(actor, Action.CREATE, Resource(
        kind=ResourceKind.EXERCISE,
        school_id=school_class.school_id,
        class_id=data.class_id,
        subject_id=data.subject_id,
    ), min_role=Role.TEACHER)

    qcm_questions, fill_blank_questions = _questions_payload(data.type, data.qcm_questions, data.fill_blank_questions)

    exercise = Exercise(
        title=data.title,
        type=data.type,
        subject_id=data.subject_id,
        class_id=data.class_id,
        created_by=actor.id,
        school_id=school_class.school_id,
        difficulty=data.difficulty,
        qcm_questions=qcm_questions,
        fill_blank_questions=fill_blank_questions,
        total_points=scoring.compute_total_points(data.type, qcm_questions, fill_blank_questions),
        meta=data.metadata.model_dump(),
        tags=data.tags,
        due_date=data.due_date,
    )
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    logger.info("Exercice '%s' (%s) créé par %s", exercise.title, exercise.type, actor.id)
    return _to_response(exercise)


def update_exercise(db: Session, actor: CurrentUser, exercise_id: uuid.UUID, data: ExerciseUpdate) -> ExerciseResponse:
    """Seul le créateur modifie ; classe, matière et type restent figés, totalPoints est recalculé."""
    exercise = _get_or_404(db, exercise_id)
    authorize(actor, Action.UPDATE, _resource(exercise), min_role=Role.TEACHER)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for field in ("title", "difficulty", "tags", "due_date", "is_active"):
        if field in update_data:
            setattr(exercise, field, update_data[field])
    if data.metadata is not None:
        exercise.meta = data.metadata.model_dump()

    if data.qcm_questions is not None or data.fill_blank_questions is not None:
        qcm_questions, fill_blank_questions = _questions_payload(
            exercise.type,
            data.qcm_questions,
            data.fill_blank_questions,
            current=exercise,
        )
        exercise.qcm_questions = qcm_questions
        exercise.fill_blank_questions = fill_blank_questions

    exercise.total_points = scoring.compute_total_points(
        exercise.type, exercise.qcm_questions, exercise.fill_blank_questions
    )
    db.commit()
    db.refresh(exercise)
    return _to_response(exercise)


def delete_exercise(db: Session, actor: CurrentUser, exercise_id: uuid.UUID) -> None:
    """Supprime l'exercice et toutes les tentatives associées."""
    exercise = _get_or_404(db, exercise_id)
    authorize(actor, Action.DELETE, _resource(exercise), min_role=Role.TEACHER)

    db.execute(delete(StudentProgress).where(StudentProgress.exercise_id == exercise_id))
    db.delete(exercise)
    db.commit()
    logger.info("Exercice %s supprimé par %s", exercise_id, actor.id)


def _questions_payload(exercise_type: str, qcm_in, fill_in, current: Exercise = None) -> tuple[list, list]:
    """Sérialise les questions du type actif ; l'autre liste reste vide."""
    if exercise_type == "qcm":
        if qcm_in is None:
            return current.qcm_questions, []
        if not qcm_in:
            raise ValidationError("Un exercice QCM doit contenir au moins une question.")
        previous = (current.qcm_questions or []) if current is not None else []
        return [
            {
                "question_text": q.question_text,
                "options": _qcm_options(q.options, previous[i]["options"] if i < len(previous) else []),
                "points": q.points,
                "explanation": q.explanation,
            }
            for i, q in enumerate(qcm_in)
        ], []

    if fill_in is None:
        return [], current.fill_blank_questions
    if not fill_in:
        raise ValidationError("Un exercice à trous doit contenir au moins une question.")
    return [], [
        {
            "sentence": q.sentence,
            "blanks": [{"position": b.position, "correct_answer": b.correct_answer} for b in q.blanks],
            "points": q.points,
            "hint": q.hint,
        }
        for q in fill_in
    ]


def _qcm_options(options_in, previous_options: list) -> list[dict]:
    """Une option dont le texte est inchangé (même question) garde son id."""
    free_ids = {}
    for opt in previous_options:
        free_ids.setdefault(opt["text"], []).append(opt["id"])

    options = []
    for opt in options_in:
        reused = free_ids.get(opt.text)
        option_id = reused.pop(0) if reused else str(uuid.uuid4())
        options.append({"id": option_id, "text": opt.text, "is_correct": opt.is_correct})
    return options


# --- Consultation ---

def get_exercises(
    db: Session,
    actor: CurrentUser,
    page: PageParams,
    class_id: Optional[uuid.UUID] = None,
    subject_id: Optional[uuid.UUID] = None,
    exercise_type: Optional[str] = None,
) -> ExerciseListResponse:
    """Enseignant : ses exercices. Élève : ceux de sa classe. Admin : tout l'établissement."""
    query = select(Exercise).where(Exercise.is_active.is_(True))
    if actor.role != Role.SUPERADMIN:
        query = query.where(Exercise.school_id == actor.school_id)
    if class_id:
        query = query.where(Exercise.class_id == class_id)
    if subject_id:
        query = query.where(Exercise.subject_id == subject_id)
    if exercise_type:
        query = query.where(Exercise.type == exercise_type)

    if actor.role == Role.TEACHER:
        query = query.where(Exercise.created_by == actor.id)
    elif actor.role == Role.STUDENT:
        if actor.student_class_id is None:
            return ExerciseListResponse(exercises=[], pagination=pagination(page.page, page.limit, 0, "Exercises"))
        query = query.where(Exercise.class_id == actor.student_class_id)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    exercises = db.execute(
        query.order_by(Exercise.created_at.desc()).offset(page.offset).limit(page.limit)
    ).scalars().all()

    hide = actor.role == Role.STUDENT
    return ExerciseListResponse(
        exercises=[_to_response(e, hide_answers=hide) for e in exercises],
        pagination=pagination(page.page, page.limit, total, "Exercises"),
    )


def get_exercise(db: Session, actor: CurrentUser, exercise_id: uuid.UUID) -> ExerciseDetailResponse:
    """
    Enseignant : uniquement ses exercices.
    Élève : exercices de sa classe, sans les réponses, avec sa dernière tentative.
    """
    exercise = _get_or_404(db, exercise_id)
    authorize(actor, Action.READ, Resource(kind=ResourceKind.EXERCISE, school_id=exercise.school_id))

    if actor.role == Role.TEACHER and exercise.created_by != actor.id:
        raise AuthorizationError("Accès refusé.", error="not_owner")

    if actor.role == Role.STUDENT:
        _ensure_in_class(actor, exercise)
        latest = db.execute(
            select(StudentProgress)
            .where(StudentProgress.student_id == actor.id, StudentProgress.exercise_id == exercise_id)
            .order_by(StudentProgress.attempt_number.desc())
            .limit(1)
        ).scalar_one_or_none()
        return ExerciseDetailResponse(
            exercise=_to_response(exercise, hide_answers=True),
            student_progress=_latest_progress(latest),
        )

    return ExerciseDetailResponse(exercise=_to_response(exercise))


def get_exercises_by_subject(
    db: Session,
    actor: CurrentUser,
    subject_id: uuid.UUID,
    page: PageParams,
    difficulty: Optional[str] = None,
) -> StudentExerciseListResponse:
    """Exercices d'une matière pour la classe de l'élève, avec statut et tentatives restantes."""
    if actor.student_class_id is None:
        raise AuthorizationError(
            "Vous devez être rattaché à une classe pour voir les exercices.", error="no_class"
        )

    query = select(Exercise).where(
        Exercise.subject_id == subject_id,
        Exercise.class_id == actor.student_class_id,
        Exercise.is_active.is_(True),
    )
    if difficulty:
        query = query.where(Exercise.difficulty == difficulty)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    exercises = db.execute(
        query.order_by(Exercise.created_at.desc()).offset(page.offset).limit(page.limit)
    ).scalars().all()

    latest_by_exercise = {}
    if exercises:
        records = db.execute(
            select(StudentProgress).where(
                StudentProgress.student_id == actor.id,
                StudentProgress.exercise_id.in_([e.id for e in exercises]),
            )
        ).scalars().all()
        for record in records:
            current = latest_by_exercise.get(record.exercise_id)
            if current is None or record.attempt_number > current.attempt_number:
                latest_by_exercise[record.exercise_id] = record

    items = []
    for exercise in exercises:
        latest = latest_by_exercise.get(exercise.id)
        max_attempts = max_attempts_for(exercise)
        items.append(StudentExerciseItem(
            id=exercise.id,
            title=exercise.title,
            type=exercise.type,
            difficulty=exercise.difficulty,
            total_points=exercise.total_points,
            due_date=exercise.due_date,
            created_by=exercise.created_by,
            created_at=exercise.created_at,
            student_progress=_latest_progress(latest),
            status="completed" if latest else "pending",
            remaining_attempts=max(0, max_attempts - latest.attempt_number) if latest else max_attempts,
        ))

    return StudentExerciseListResponse(
        exercises=items,
        pagination=pagination(page.page, page.limit, total, "Exercises"),
    )


# --- Soumission ---

def submit_exercise(db: Session, actor: CurrentUser, exercise_id: uuid.UUID, data: SubmissionRequest) -> SubmissionResponse:
    """
    Corrige et enregistre une tentative.
    Lève AttemptLimitError si la limite de tentatives est atteinte (rien n'est écrit).
    """
    exercise = _get_or_404(db, exercise_id)
    authorize(actor, Action.CREATE, Resource(kind=ResourceKind.PROGRESS, school_id=exercise.school_id))
    _ensure_in_class(actor, exercise)
    if not exercise.is_active:
        raise ValidationError("Cet exercice n'est plus disponible.", error="exercise_inactive")

    result = scoring.score(exercise, data.answers)
    max_attempts = max_attempts_for(exercise)
    progress_id = uuid.uuid4()

    values = {
        "id": progress_id,
        "student_id": actor.id,
        "exercise_id": exercise.id,
        "subject_id": exercise.subject_id,
        "class_id": exercise.class_id,
        "qcm_answers": [a.model_dump() for a in result.qcm_answers],
        "fill_blank_answers": [a.model_dump() for a in result.fill_blank_answers],
        "total_points_earned": result.total_points_earned,
        "max_possible_points": result.max_possible_points,
        "accuracy_percentage": result.accuracy_percentage,
        "started_at": data.started_at,
        "completed_at": datetime.now(),
        "time_spent": data.time_spent,
    }

    try:
        attempt_number = _insert_attempt(db, values, max_attempts)
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            "Une autre soumission est en cours pour cet exercice, veuillez réessayer.",
            error="concurrent_submission",
        )

    if attempt_number is None:
        db.rollback()
        logger.warning("Limite de tentatives atteinte : élève %s, exercice %s", actor.id, exercise_id)
        raise scoring.attempt_limit_error(max_attempts)

    db.commit()
    logger.info(
        "Soumission élève %s, exercice %s, tentative %d : %s%%",
        actor.id, exercise_id, attempt_number, result.accuracy_percentage,
    )
    return SubmissionResponse(
        progress_id=progress_id,
        total_points_earned=result.total_points_earned,
        max_possible_points=result.max_possible_points,
        accuracy_percentage=result.accuracy_percentage,
        attempt_number=attempt_number,
        qcm_answers=result.qcm_answers,
        fill_blank_answers=result.fill_blank_answers,
    )


def _insert_attempt(db: Session, values: dict, max_attempts: int) -> Optional[int]:
    """
    INSERT INTO student_progress (...) SELECT ..., count + 1 WHERE count < max_attempts.
    Retourne le numéro de tentative inséré, ou None si la limite est atteinte.
    """
    table = StudentProgress.__table__
    attempts = (
        select(func.count())
        .select_from(table)
        .where(table.c.student_id == values["student_id"], table.c.exercise_id == values["exercise_id"])
        .correlate(None)
        .scalar_subquery()
    )
    columns = list(values)
    row = select(
        *[literal(values[c], type_=table.c[c].type) for c in columns],
        attempts + 1,
    ).where(attempts < max_attempts)

    stmt = (
        insert(table)
        .from_select(columns + ["attempt_number"], row)
        .returning(table.c.attempt_number)
    )
    return db.execute(stmt).scalar()


def get_exercise_progress(
    db: Session, actor: CurrentUser, exercise_id: uuid.UUID, student_id: Optional[uuid.UUID] = None
) -> ExerciseProgressResponse:
    """Tentatives d'un élève sur un exercice ; l'élève ne voit que les siennes."""
    exercise = _get_or_404(db, exercise_id)

    if actor.role == Role.STUDENT:
        student_id = actor.id
    if student_id is None:
        raise ValidationError("Le paramètre studentId est requis.", error="missing_student_id")

    authorize(actor, Action.READ, Resource(
        kind=ResourceKind.PROGRESS,
        school_id=exercise.school_id,
        class_id=exercise.class_id,
        student_id=student_id,
    ))

    records = db.execute(
        select(StudentProgress)
        .where(StudentProgress.student_id == student_id, StudentProgress.exercise_id == exercise_id)
        .order_by(StudentProgress.attempt_number)
    ).scalars().all()

    return ExerciseProgressResponse(
        progress=[progress_to_response(r) for r in records],
        total_attempts=len(records),
    )


# --- Helpers ---

def max_attempts_for(exercise: Exercise) -> int:
    return int((exercise.meta or {}).get("max_attempts") or settings.DEFAULT_MAX_ATTEMPTS)


def _get_or_404(db: Session, exercise_id: uuid.UUID) -> Exercise:
    exercise = db.get(Exercise, exercise_id)
    if exercise is None:
        raise NotFoundError("Exercice introuvable.")
    return exercise


def _ensure_in_class(actor: CurrentUser, exercise: Exercise) -> None:
    if actor.role == Role.STUDENT and actor.student_class_id != exercise.class_id:
        raise AuthorizationError("Vous n'appartenez pas à cette classe.", error="not_in_class")


def _resource(exercise: Exercise) -> Resource:
    return Resource(
        kind=ResourceKind.EXERCISE,
        school_id=exercise.school_id,
        class_id=exercise.class_id,
        subject_id=exercise.subject_id,
        owner_id=exercise.created_by,
    )


def _latest_progress(record: Optional[StudentProgress]) -> Optional[LatestProgress]:
    if record is None:
        return None
    return LatestProgress(
        attempt_number=record.attempt_number,
        score=record.total_points_earned,
        accuracy=record.accuracy_percentage,
        completed_at=record.completed_at,
        status="passed" if record.accuracy_percentage >= PASS_THRESHOLD else "failed",
    )


def _to_response(exercise: Exercise, hide_answers: bool = False) -> ExerciseResponse:
    """Construit la réponse ; côté élève, les bonnes réponses sont masquées."""
    qcm_questions = exercise.qcm_questions or []
    fill_blank_questions = exercise.fill_blank_questions or []
    if hide_answers:
        qcm_questions = [
            {**q, "options": [{**opt, "is_correct": None} for opt in q.get("options", [])]}
            for q in qcm_questions
        ]
        fill_blank_questions = [
            {**q, "blanks": [{**b, "correct_answer": None} for b in q.get("blanks", [])]}
            for q in fill_blank_questions
        ]

    return ExerciseResponse(
        id=exercise.id,
        title=exercise.title,
        type=exercise.type,
        subject_id=exercise.subject_id,
        class_id=exercise.class_id,
        created_by=exercise.created_by,
        difficulty=exercise.difficulty,
        is_active=exercise.is_active,
        qcm_questions=qcm_questions,
        fill_blank_questions=fill_blank_questions,
        total_points=exercise.total_points,
        metadata=exercise.meta or {},
        tags=exercise.tags or [],
        due_date=exercise.due_date,
        created_at=exercise.created_at,
        updated_at=exercise.updated_at,
    )
