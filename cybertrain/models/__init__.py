"""
Data models. Single import surface for DB entities.

DB entities (cybertrain.models.models):
- Company, User, UserGroup, GroupMembership
- Module, Lesson, Quiz, Question, QuestionOption
- ModuleAssignment, GroupAssignment
- LessonProgress, ModuleProgress, QuizResult, QuestionAnswer, ComprehensiveCertificate
"""

from cybertrain.models.models import (
    ProgressStatus,
    Role,
    Company,
    User,
    UserGroup,
    GroupMembership,
    Module,
    Lesson,
    Quiz,
    Question,
    QuestionOption,
    ModuleAssignment,
    GroupAssignment,
    LessonProgress,
    ModuleProgress,
    QuizResult,
    QuestionAnswer,
    ComprehensiveCertificate,
)

__all__ = [
    "ProgressStatus",
    "Role",
    "Company",
    "User",
    "UserGroup",
    "GroupMembership",
    "Module",
    "Lesson",
    "Quiz",
    "Question",
    "QuestionOption",
    "ModuleAssignment",
    "GroupAssignment",
    "LessonProgress",
    "ModuleProgress",
    "QuizResult",
    "QuestionAnswer",
    "ComprehensiveCertificate",
]
