"""
Calcul des moyennes pondérées et appréciations (système français, barème /20).

Regroupement explicite par matière puis réduction pure : le résultat ne dépend
pas de l'ordre des notes en entrée (arithmétique décimale exacte).
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.exceptions import ValidationError
from app.schemas.common import CamelModel

# Bornes inférieures incluses, ordre décroissant
APPRECIATION_BANDS = [
    (Decimal("18"), "Excellent"),
    (Decimal("16"), "Très Bien"),
    (Decimal("14"), "Bien"),
    (Decimal("12"), "Assez Bien"),
    (Decimal("10"), "Passable"),
    (Decimal("6"), "Insuffisant"),
]
LOWEST_APPRECIATION = "Très Insuffisant"

MIN_GRADE = Decimal("0")
MAX_GRADE = Decimal("20")
MIN_COEFFICIENT = Decimal("0.1")
MAX_COEFFICIENT = Decimal("5")


def _dec(value) -> Decimal:
    return Decimal(str(value))


def appreciation_for(value) -> Optional[str]:
    if value is None:
        return None
    value = _dec(value)
    for lower_bound, label in APPRECIATION_BANDS:
        if value >= lower_bound:
            return label
    return LOWEST_APPRECIATION


def validate_grade_value(value) -> None:
    if value is None:
        raise ValidationError("La note est obligatoire.", error="invalid_grade")
    grade = _dec(value)
    if grade < MIN_GRADE or grade > MAX_GRADE:
        raise ValidationError("La note doit être entre 0 et 20.", error="invalid_grade")
    if (grade * 2) % 1 != 0:
        raise ValidationError(
            "La note doit être un nombre entier ou demi-point (ex: 15 ou 15.5).", error="invalid_grade"
        )


def validate_coefficient(value) -> None:
    if value is None:
        raise ValidationError("Le coefficient est obligatoire.", error="invalid_coefficient")
    coefficient = _dec(value)
    if coefficient < MIN_COEFFICIENT or coefficient > MAX_COEFFICIENT:
        raise ValidationError("Le coefficient doit être compris entre 0.1 et 5.", error="invalid_coefficient")


def round_half_up(value: Decimal, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


class SubjectAverage(CamelModel):
    average: float
    appreciation: str
    grade_count: int
    total_coefficient: float


class GradeAggregate(CamelModel):
    overall_average: float
    overall_appreciation: Optional[str] = None
    total_grades: int
    per_subject: Dict[str, SubjectAverage] = {}


def _weighted(records: List[Any]) -> Decimal:
    total_weighted = sum((_dec(r.grade) * _dec(r.coefficient) for r in records), Decimal(0))
    total_coef = sum((_dec(r.coefficient) for r in records), Decimal(0))
    return total_weighted / total_coef


def weighted_average(records: Iterable[Any]) -> Optional[float]:
    """Σ(note × coef) / Σ(coef), arrondi à 2 décimales ; None sans note."""
    records = list(records)
    if not records:
        return None
    return round_half_up(_weighted(records))


def group_by_subject(records: Iterable[Any], key: Callable[[Any], Any]) -> Dict[str, List[Any]]:
    groups: Dict[str, List[Any]] = defaultdict(list)
    for record in records:
        groups[str(key(record))].append(record)
    return dict(groups)


def aggregate(records: Iterable[Any], key: Callable[[Any], Any] = lambda r: r.subject_id) -> GradeAggregate:
    """
    Moyenne générale et moyennes par matière.
    Chaque enregistrement expose grade, coefficient et la clé de matière.
    Une note ou un coefficient invalide est rejeté (ValidationError), jamais ignoré.
    """
    records = list(records)
    for record in records:
        validate_grade_value(record.grade)
        validate_coefficient(record.coefficient)

    if not records:
        return GradeAggregate(overall_average=0.0, overall_appreciation=None, total_grades=0)

    per_subject = {}
    for subject_key, group in sorted(group_by_subject(records, key).items()):
        average = weighted_average(group)
        per_subject[subject_key] = SubjectAverage(
            average=average,
            appreciation=appreciation_for(average),
            grade_count=len(group),
            total_coefficient=float(sum((_dec(r.coefficient) for r in group), Decimal(0))),
        )

    overall = weighted_average(records)
    return GradeAggregate(
        overall_average=overall,
        overall_appreciation=appreciation_for(overall),
        total_grades=len(records),
        per_subject=per_subject,
    )
