"""
Service métier pour le suivi de progression : vue élève, vue classe,
analyse d'un exercice et suppression d'une tentative.
"""

import uuid
import logging
from collections import defaultdict
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.exceptions import AuthorizationError, NotFoundError
from app.models.exercise import Exercise
from app.models.progress import StudentProgress
from app.models.school_class import SchoolClass
from app.models.subject import Subject
from app.models.user import User
from app.schemas.auth import CurrentUser
from app.schemas.progress import (
    ClassProgressResponse,
    ExerciseAnalyticsResponse,
    OptionStats,
    OverallExerciseStats,
    ProgressResponse,
    ProgressStatistics,
    QuestionAnalytics,
    StudentClassProgress,
    StudentOverviewResponse,
    SubjectPerformance,
    SubmissionSummary,
)
from app.services.access_rules import Action, Resource, ResourceKind, Role, authorize

logger = logging.getLogger(__name__)

EXERCISE_TYPES = ("qcm", "fill_blanks")
DIFFICULTIES = ("easy", "medium", "hard")


def rounded_mean(values: Iterable[float]) -> int:
    """Moyenne arrondie à l'entier (demi supérieur), 0 si vide."""
    values = [Decimal(str(v)) for v in values]
    if not values:
        return 0
    return int((sum(values) / len(values)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _date_filters(query, date_from: Optional[datetime], date_to: Optional[datetime]):
    if date_from:
        query = query.where(StudentProgress.completed_at >= date_from)
    if date_to:
        query = query.where(StudentProgress.completed_at <= date_to)
    return query


# --- Vue élève ---

def get_student_overview(
    db: Session,
    actor: CurrentUser,
    student_id: uuid.UUID,
    subject_id: Optional[uuid.UUID] = None,
    class_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> StudentOverviewResponse:
    """
    Tentatives d'un élève et statistiques : précision moyenne, répartition par type
    et difficulté, performance par matière.
    """
    student = db.get(User, student_id)
    if student is None or student.role != Role.STUDENT.value:
        raise NotFoundError("Élève introuvable.")
    authorize(actor, Action.READ, Resource(
        kind=ResourceKind.PROGRESS,
        school_id=student.school_id,
        class_id=student.student_class_id,
        student_id=student.id,
    ))

    query = (
        select(StudentProgress, Exercise.type, Exercise.difficulty, Subject.name)
        .join(Exercise, Exercise.id == StudentProgress.exercise_id)
        .join(Subject, Subject.id == StudentProgress.subject_id)
        .where(StudentProgress.student_id == student_id)
    )
    if subject_id:
        query = query.where(StudentProgress.subject_id == subject_id)
    if class_id:
        query = query.where(StudentProgress.class_id == class_id)
    query = _date_filters(query, date_from, date_to)
    rows = db.execute(query.order_by(StudentProgress.completed_at.desc())).all()

    by_type = {t: 0 for t in EXERCISE_TYPES}
    by_difficulty = {d: 0 for d in DIFFICULTIES}
    by_subject = defaultdict(list)
    subject_names = {}
    for record, exercise_type, difficulty, subject_name in rows:
        by_type[exercise_type] = by_type.get(exercise_type, 0) + 1
        by_difficulty[difficulty] = by_difficulty.get(difficulty, 0) + 1
        by_subject[record.subject_id].append(record.accuracy_percentage)
        subject_names[record.subject_id] = subject_name

    statistics = ProgressStatistics(
        total_exercises=len(rows),
        average_accuracy=rounded_mean(r.accuracy_percentage for r, *_ in rows),
        total_time_spent=sum(r.time_spent or 0 for r, *_ in rows),
        exercises_by_type=by_type,
        exercises_by_difficulty=by_difficulty,
        subject_performance=[
            SubjectPerformance(
                subject_id=sid,
                subject_name=subject_names[sid],
                total_exercises=len(accuracies),
                average_accuracy=rounded_mean(accuracies),
            )
            for sid, accuracies in sorted(by_subject.items(), key=lambda item: subject_names[item[0]])
        ],
    )
    return StudentOverviewResponse(
        progress=[progress_to_response(r) for r, *_ in rows],
        statistics=statistics,
    )


# --- Vue classe ---

def get_class_progress(
    db: Session,
    actor: CurrentUser,
    class_id: uuid.UUID,
    subject_id: Optional[uuid.UUID] = None,
    exercise_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> ClassProgressResponse:
    """Tentatives de la classe regroupées par élève (enseignant de la classe ou admin)."""
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")
    authorize(actor, Action.READ, Resource(kind=ResourceKind.PROGRESS, school_id=school_class.school_id),
              min_role=Role.TEACHER)
    if actor.role == Role.TEACHER and class_id not in actor.teaching_class_ids:
        raise AuthorizationError("Vous n'enseignez pas dans cette classe.", error="not_teaching_class")

    query = (
        select(StudentProgress, User.name)
        .join(User, User.id == StudentProgress.student_id)
        .where(StudentProgress.class_id == class_id)
    )
    if subject_id:
        query = query.where(StudentProgress.subject_id == subject_id)
    if exercise_id:
        query = query.where(StudentProgress.exercise_id == exercise_id)
    query = _date_filters(query, date_from, date_to)
    rows = db.execute(query.order_by(StudentProgress.completed_at.desc())).all()

    grouped = defaultdict(list)
    names = {}
    for record, student_name in rows:
        grouped[record.student_id].append(record)
        names[record.student_id] = student_name

    class_progress = [
        StudentClassProgress(
            student_id=sid,
            student_name=names[sid],
            total_exercises=len(records),
            average_accuracy=rounded_mean(r.accuracy_percentage for r in records),
            exercises=[progress_to_response(r) for r in records],
        )
        for sid, records in sorted(grouped.items(), key=lambda item: names[item[0]])
    ]
    return ClassProgressResponse(
        class_progress=class_progress,
        total_students=len(class_progress),
        total_exercises_completed=len(rows),
    )


# --- Analyse d'un exercice ---

def get_exercise_analytics(db: Session, actor: CurrentUser, exercise_id: uuid.UUID) -> ExerciseAnalyticsResponse:
    """Taux de réussite par question et distribution des options QCM, pour le créateur."""
    exercise = db.get(Exercise, exercise_id)
    if exercise is None:
        raise NotFoundError("Exercice introuvable.")
    authorize(actor, Action.READ, Resource(kind=ResourceKind.EXERCISE, school_id=exercise.school_id),
              min_role=Role.TEACHER)
    if actor.role == Role.TEACHER and exercise.created_by != actor.id:
        raise AuthorizationError("Accès refusé.", error="not_owner")

    submissions = db.execute(
        select(StudentProgress)
        .where(StudentProgress.exercise_id == exercise_id)
        .order_by(StudentProgress.completed_at.desc())
    ).scalars().all()

    questions = []
    if exercise.type == "qcm":
        for index, question in enumerate(exercise.qcm_questions or []):
            distribution = {
                opt["id"]: OptionStats(text=opt["text"], count=0, is_correct=bool(opt.get("is_correct")))
                for opt in question.get("options", [])
            }
            total = correct = 0
            for submission in submissions:
                answer = next(
                    (a for a in submission.qcm_answers or [] if a.get("question_index") == index), None
                )
                if answer is None:
                    continue
                total += 1
                if answer.get("is_correct"):
                    correct += 1
                selected = answer.get("selected_option")
                if selected in distribution:
                    distribution[selected].count += 1
            questions.append(QuestionAnalytics(
                question_index=index,
                question_text=question.get("question_text", ""),
                total_answers=total,
                correct_answers=correct,
                accuracy=rounded_mean([100] * correct + [0] * (total - correct)),
                option_distribution=distribution,
            ))
    else:
        for index, question in enumerate(exercise.fill_blank_questions or []):
            total = correct = 0
            for submission in submissions:
                answer = next(
                    (a for a in submission.fill_blank_answers or [] if a.get("question_index") == index), None
                )
                if answer is None:
                    continue
                total += 1
                if answer.get("blank_answers") and all(b.get("is_correct") for b in answer["blank_answers"]):
                    correct += 1
            questions.append(QuestionAnalytics(
                question_index=index,
                question_text=question.get("sentence", ""),
                total_answers=total,
                correct_answers=correct,
                accuracy=rounded_mean([100] * correct + [0] * (total - correct)),
            ))

    count = len(submissions)
    overall = OverallExerciseStats(
        total_submissions=count,
        unique_students=len({s.student_id for s in submissions}),
        average_score=sum(s.accuracy_percentage for s in submissions) / count if count else 0.0,
        average_time_spent=sum(s.time_spent or 0 for s in submissions) / count if count else 0.0,
    )

    return ExerciseAnalyticsResponse(
        exercise_id=exercise.id,
        title=exercise.title,
        type=exercise.type,
        total_points=exercise.total_points,
        overall=overall,
        questions=questions,
        submissions=[
            SubmissionSummary(
                student_id=s.student_id,
                accuracy=s.accuracy_percentage,
                time_spent=s.time_spent or 0,
                completed_at=s.completed_at,
                attempt_number=s.attempt_number,
            )
            for s in submissions
        ],
    )


# --- Administration ---

def delete_progress(db: Session, actor: CurrentUser, progress_id: uuid.UUID) -> None:
    record = db.get(StudentProgress, progress_id)
    if record is None:
        raise NotFoundError("Tentative introuvable.")
    school_class = db.get(SchoolClass, record.class_id)
    authorize(actor, Action.DELETE, Resource(
        kind=ResourceKind.PROGRESS, school_id=school_class.school_id if school_class else None,
    ), min_role=Role.ADMIN)

    db.delete(record)
    db.commit()
    logger.info("Tentative %s supprimée par %s", progress_id, actor.id)


def progress_to_response(record: StudentProgress) -> ProgressResponse:
    return ProgressResponse(
        id=record.id,
        student_id=record.student_id,
        exercise_id=record.exercise_id,
        subject_id=record.subject_id,
        class_id=record.class_id,
        qcm_answers=record.qcm_answers or [],
        fill_blank_answers=record.fill_blank_answers or [],
        total_points_earned=record.total_points_earned,
        max_possible_points=record.max_possible_points,
        accuracy_percentage=record.accuracy_percentage,
        attempt_number=record.attempt_number,
        started_at=record.started_at,
        completed_at=record.completed_at,
        time_spent=record.time_spent or 0,
    )
