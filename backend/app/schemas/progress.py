"""
Schémas Pydantic pour le suivi des tentatives et les statistiques de progression.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from app.schemas.common import CamelModel
from app.services.scoring import FillBlankAnswerResult, QcmAnswerResult


class ProgressResponse(CamelModel):
    id: uuid.UUID
    student_id: uuid.UUID
    exercise_id: uuid.UUID
    subject_id: uuid.UUID
    class_id: uuid.UUID
    qcm_answers: List[QcmAnswerResult] = []
    fill_blank_answers: List[FillBlankAnswerResult] = []
    total_points_earned: float
    max_possible_points: float
    accuracy_percentage: int
    attempt_number: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    time_spent: int = 0


class ExerciseProgressResponse(CamelModel):
    progress: List[ProgressResponse]
    total_attempts: int


class SubjectPerformance(CamelModel):
    subject_id: uuid.UUID
    subject_name: str
    total_exercises: int
    average_accuracy: int


class ProgressStatistics(CamelModel):
    total_exercises: int
    average_accuracy: int
    total_time_spent: int
    exercises_by_type: Dict[str, int]
    exercises_by_difficulty: Dict[str, int]
    subject_performance: List[SubjectPerformance]


class StudentOverviewResponse(CamelModel):
    progress: List[ProgressResponse]
    statistics: ProgressStatistics


class StudentClassProgress(CamelModel):
    student_id: uuid.UUID
    student_name: str
    total_exercises: int
    average_accuracy: int
    exercises: List[ProgressResponse]


class ClassProgressResponse(CamelModel):
    class_progress: List[StudentClassProgress]
    total_students: int
    total_exercises_completed: int


class OptionStats(CamelModel):
    text: str
    count: int
    is_correct: bool


class QuestionAnalytics(CamelModel):
    question_index: int
    question_text: str
    total_answers: int
    correct_answers: int
    accuracy: int
    option_distribution: Dict[str, OptionStats] = {}


class SubmissionSummary(CamelModel):
    student_id: uuid.UUID
    accuracy: int
    time_spent: int
    completed_at: Optional[datetime] = None
    attempt_number: int


class OverallExerciseStats(CamelModel):
    total_submissions: int
    unique_students: int
    average_score: float
    average_time_spent: float


class ExerciseAnalyticsResponse(CamelModel):
    exercise_id: uuid.UUID
    title: str
    type: str
    total_points: float
    overall: OverallExerciseStats
    questions: List[QuestionAnalytics]
    submissions: List[SubmissionSummary]
