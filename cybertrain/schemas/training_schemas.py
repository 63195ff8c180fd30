"""
Learner-facing training schemas: dashboard, module outline, lessons.
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional


class ModuleProgressInfo(BaseModel):
    status: str
    completed_lessons: int
    total_lessons: int
    completion_percentage: float
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    certificate_issued: bool = False


class DashboardModule(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    order: int
    progress: Optional[ModuleProgressInfo] = None
    completion_percentage: float


class QuizResultSummary(BaseModel):
    id: int
    quiz_id: int
    quiz_title: str
    score: int
    passed: bool
    completed_at: str


class DashboardResponse(BaseModel):
    modules: list[DashboardModule]
    recent_quiz_results: list[QuizResultSummary]
    completed_modules: int
    total_modules: int
    overall_progress: float
    all_modules_completed: bool
    has_comprehensive_certificate: bool


class QuizLink(BaseModel):
    id: int
    title: str
    passing_score: int


class LessonOutlineItem(BaseModel):
    id: int
    title: str
    order: int
    status: str
    is_unlocked: bool
    quizzes: list[QuizLink] = []


class ModuleOutlineResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    progress: ModuleProgressInfo
    lessons: list[LessonOutlineItem]
    next_lesson_index: int


class LessonResponse(BaseModel):
    id: int
    module_id: int
    title: str
    order: int
    content_html: str
    status: str
    scroll_position: int
    quizzes: list[QuizLink] = []
    previous_lesson_id: Optional[int] = None
    next_lesson_id: Optional[int] = None


class LessonProgressRequest(BaseModel):
    status: Literal["NotStarted", "InProgress", "Completed"] = "InProgress"
    scroll_position: Optional[int] = Field(default=None, ge=0)


class LessonProgressResponse(BaseModel):
    lesson_id: int
    status: str
    scroll_position: int
    module_progress: ModuleProgressInfo
