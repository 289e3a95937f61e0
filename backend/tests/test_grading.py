"""
Tests unitaires des moyennes pondérées et appréciations.
"""

import random
from types import SimpleNamespace

import pytest

from app.exceptions import ValidationError
from app.services.grading import (
    aggregate,
    appreciation_for,
    validate_coefficient,
    validate_grade_value,
    weighted_average,
)


def g(grade, coefficient=1, subject="maths"):
    return SimpleNamespace(grade=grade, coefficient=coefficient, subject_id=subject)


# ============================================================
# Appréciations
# ============================================================

@pytest.mark.parametrize("value,expected", [
    (20, "Excellent"),
    (18, "Excellent"),
    (17.5, "Très Bien"),
    (16, "Très Bien"),
    (14, "Bien"),
    (13.33, "Assez Bien"),
    (12, "Assez Bien"),
    (10, "Passable"),
    (9.99, "Insuffisant"),
    (6, "Insuffisant"),
    (5.5, "Très Insuffisant"),
    (0, "Très Insuffisant"),
])
def test_appreciation_par_tranche(value, expected):
    assert appreciation_for(value) == expected


def test_appreciation_sans_valeur():
    assert appreciation_for(None) is None


# ============================================================
# Validation
# ============================================================

@pytest.mark.parametrize("value", [-0.5, 20.5, 15.3, None])
def test_note_invalide(value):
    with pytest.raises(ValidationError) as exc:
        validate_grade_value(value)
    assert exc.value.error == "invalid_grade"


@pytest.mark.parametrize("value", [0, 15, 15.5, 20])
def test_note_valide(value):
    validate_grade_value(value)


@pytest.mark.parametrize("value", [0, 0.05, 5.5])
def test_coefficient_hors_bornes(value):
    with pytest.raises(ValidationError):
        validate_coefficient(value)


# ============================================================
# Moyennes
# ============================================================

def test_moyenne_ponderee():
    """(12 × 2 + 16 × 1) / 3 = 13.33 → Assez Bien."""
    result = aggregate([g(12, 2), g(16, 1)])
    assert result.overall_average == 13.33
    assert result.overall_appreciation == "Assez Bien"
    assert result.per_subject["maths"].total_coefficient == 3


def test_moyenne_arrondie_au_demi_superieur():
    # (12 × 3 + 12.5) / 4 = 12.125
    assert weighted_average([g(12, 3), g(12.5, 1)]) == 12.13
    assert aggregate([g(12, 3), g(12.5, 1)]).overall_average == 12.13


def test_moyenne_par_matiere():
    records = [g(18, 1, "maths"), g(10, 1, "français"), g(14, 2, "français")]
    result = aggregate(records)
    assert set(result.per_subject) == {"maths", "français"}
    assert result.per_subject["maths"].appreciation == "Excellent"
    assert result.per_subject["français"].average == 12.67
    assert result.per_subject["français"].grade_count == 2
    assert result.total_grades == 3


def test_moyenne_independante_de_l_ordre():
    records = [g(18, 1, "a"), g(7.5, 2, "b"), g(13, 0.5, "a"), g(19.5, 3, "c"), g(11, 1.5, "b")]
    reference = aggregate(records)
    for _ in range(10):
        shuffled = records[:]
        random.shuffle(shuffled)
        assert aggregate(shuffled) == reference


def test_aucune_note():
    result = aggregate([])
    assert result.overall_average == 0.0
    assert result.overall_appreciation is None
    assert result.per_subject == {}
    assert weighted_average([]) is None


def test_note_invalide_rejetee_pas_ignoree():
    with pytest.raises(ValidationError):
        aggregate([g(15, 1), g(25, 1)])


def test_cle_personnalisee():
    records = [SimpleNamespace(grade=14, coefficient=1, name="Histoire")]
    result = aggregate(records, key=lambda r: r.name)
    assert "Histoire" in result.per_subject
