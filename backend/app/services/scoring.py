"""
Correction des exercices (QCM et textes à trous).

Fonctions pures : même exercice + mêmes réponses → même résultat.
Une réponse absente ou invalide vaut 0 point, jamais une exception.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from app.exceptions import AttemptLimitError
from app.schemas.common import CamelModel


class QcmAnswerResult(CamelModel):
    question_index: int
    selected_option: Optional[str] = None
    is_correct: bool
    points_earned: float


class BlankResult(CamelModel):
    blank_index: int
    student_answer: str
    is_correct: bool


class FillBlankAnswerResult(CamelModel):
    question_index: int
    blank_answers: List[BlankResult]
    points_earned: float


class ScoreResult(CamelModel):
    total_points_earned: float
    max_possible_points: float
    accuracy_percentage: int
    qcm_answers: List[QcmAnswerResult] = []
    fill_blank_answers: List[FillBlankAnswerResult] = []


def compute_total_points(exercise_type: str, qcm_questions: list, fill_blank_questions: list) -> float:
    """Somme des points des questions du type actif."""
    if exercise_type == "qcm":
        questions = qcm_questions or []
    elif exercise_type == "fill_blanks":
        questions = fill_blank_questions or []
    else:
        questions = []
    return float(sum(q.get("points", 1) for q in questions))


def accuracy_percentage(earned: float, maximum: float) -> int:
    """round(100 × earned / max) arrondi au demi supérieur, 0 si max == 0."""
    if not maximum:
        return 0
    ratio = Decimal(str(earned)) * 100 / Decimal(str(maximum))
    value = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, value))


def normalize_blank(value: Any) -> str:
    """Seules normalisations admises : espaces en bordure et casse."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def score_qcm(questions: list, answers: list) -> List[QcmAnswerResult]:
    results = []
    for index, question in enumerate(questions):
        selected = answers[index] if index < len(answers) else None
        selected = selected if isinstance(selected, str) else None
        option = next(
            (opt for opt in question.get("options", []) if selected is not None and opt.get("id") == selected),
            None,
        )
        is_correct = bool(option and option.get("is_correct"))
        results.append(QcmAnswerResult(
            question_index=index,
            selected_option=selected,
            is_correct=is_correct,
            points_earned=float(question.get("points", 1)) if is_correct else 0.0,
        ))
    return results


def _submitted_blanks(answer: Any) -> list:
    """Accepte {"blanks": [...]} ou directement une liste."""
    if isinstance(answer, dict):
        answer = answer.get("blanks")
    return answer if isinstance(answer, list) else []


def score_fill_blanks(questions: list, answers: list) -> List[FillBlankAnswerResult]:
    results = []
    for q_index, question in enumerate(questions):
        blanks = question.get("blanks", [])
        submitted = _submitted_blanks(answers[q_index] if q_index < len(answers) else None)
        per_blank = float(question.get("points", 1)) / len(blanks) if blanks else 0.0

        blank_results = []
        points = 0.0
        for b_index, blank in enumerate(blanks):
            raw = submitted[b_index] if b_index < len(submitted) else ""
            is_correct = normalize_blank(raw) == normalize_blank(blank.get("correct_answer"))
            if is_correct:
                points += per_blank
            blank_results.append(BlankResult(
                blank_index=b_index,
                student_answer=raw if isinstance(raw, str) else "",
                is_correct=is_correct,
            ))

        results.append(FillBlankAnswerResult(
            question_index=q_index, blank_answers=blank_results, points_earned=points,
        ))
    return results


def score(exercise, answers: Optional[list]) -> ScoreResult:
    """
    Corrige une soumission.
    `exercise` expose type, qcm_questions, fill_blank_questions et total_points.
    """
    answers = answers if isinstance(answers, list) else []
    qcm_results: List[QcmAnswerResult] = []
    fill_results: List[FillBlankAnswerResult] = []

    if exercise.type == "qcm":
        qcm_results = score_qcm(exercise.qcm_questions or [], answers)
        earned = sum(r.points_earned for r in qcm_results)
    elif exercise.type == "fill_blanks":
        fill_results = score_fill_blanks(exercise.fill_blank_questions or [], answers)
        earned = sum(r.points_earned for r in fill_results)
    else:
        earned = 0.0

    maximum = float(exercise.total_points or 0)
    return ScoreResult(
        total_points_earned=earned,
        max_possible_points=maximum,
        accuracy_percentage=accuracy_percentage(earned, maximum),
        qcm_answers=qcm_results,
        fill_blank_answers=fill_results,
    )


def attempt_limit_error(max_attempts: int) -> AttemptLimitError:
    """Erreur levée quand la (N+1)-ème tentative est refusée (N == max_attempts)."""
    return AttemptLimitError(f"Nombre maximal de tentatives atteint pour cet exercice ({max_attempts}).")
