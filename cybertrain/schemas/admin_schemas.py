"""
Admin CRUD schemas. Field bounds mirror the column sizes in cybertrain.models.models.
"""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional


# ----- companies -----

class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CompanyResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    date_created: str
    user_count: int
    group_count: int


# ----- groups -----

class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    company_id: int


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    company_id: Optional[int] = None


class GroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    company_id: int
    date_created: str
    active_member_count: int
    assigned_module_count: int


class MembershipCreate(BaseModel):
    user_id: int


class MembershipUpdate(BaseModel):
    is_active: bool


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    group_id: int
    email: str
    display_name: str
    is_active: bool
    date_joined: str
    joined_by: Optional[str] = None


class GroupAssignmentCreate(BaseModel):
    module_id: int
    due_date: Optional[datetime] = None


class GroupAssignmentResponse(BaseModel):
    id: int
    group_id: int
    module_id: int
    module_title: str
    assigned_at: str
    assigned_by: str
    due_date: Optional[str] = None
    member_count: int
    completed_count: int
    completion_percentage: float


# ----- modules / lessons -----

class ModuleCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    order: int = Field(ge=1, le=999)
    is_active: bool = True


class ModuleUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    order: Optional[int] = Field(default=None, ge=1, le=999)
    is_active: Optional[bool] = None


class ModuleResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    order: int
    is_active: bool
    date_created: str
    date_modified: Optional[str] = None
    lesson_count: int


class LessonCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = ""
    order: Optional[int] = Field(default=None, ge=1, le=999)
    is_active: bool = True


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None
    module_id: Optional[int] = None
    order: Optional[int] = Field(default=None, ge=1, le=999)
    is_active: Optional[bool] = None


class LessonResponse(BaseModel):
    id: int
    module_id: int
    title: str
    content: str
    order: int
    is_active: bool
    date_created: str
    date_modified: Optional[str] = None
    quiz_count: int


# ----- quizzes / questions -----

class QuizCreate(BaseModel):
    lesson_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    passing_score: int = Field(default=70, ge=1, le=100)
    is_active: bool = True


class QuizUpdate(BaseModel):
    lesson_id: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    passing_score: Optional[int] = Field(default=None, ge=1, le=100)
    is_active: Optional[bool] = None


class QuizResponse(BaseModel):
    id: int
    lesson_id: int
    title: str
    description: Optional[str] = None
    passing_score: int
    is_active: bool
    date_created: str
    date_modified: Optional[str] = None
    question_count: int
    attempt_count: int


class OptionIn(BaseModel):
    text: str = Field(min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    quiz_id: int
    text: str = Field(min_length=1)
    order: int = Field(ge=1, le=999)
    options: list[OptionIn] = Field(min_length=2)


class QuestionUpdate(BaseModel):
    text: Optional[str] = Field(default=None, min_length=1)
    order: Optional[int] = Field(default=None, ge=1, le=999)
    options: Optional[list[OptionIn]] = Field(default=None, min_length=2)


class OptionResponse(BaseModel):
    id: int
    text: str
    is_correct: bool
    order: int


class QuestionResponse(BaseModel):
    id: int
    quiz_id: int
    text: str
    order: int
    options: list[OptionResponse]


# ----- users -----

class UserCreate(BaseModel):
    email: EmailStr
    password: str
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    role: Literal["Admin", "User"] = "User"
    company_id: Optional[int] = None


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    role: Optional[Literal["Admin", "User"]] = None
    company_id: Optional[int] = None


class UserAssignmentCreate(BaseModel):
    module_id: int
    due_date: Optional[datetime] = None


class UserAssignmentResponse(BaseModel):
    id: int
    user_id: int
    module_id: int
    module_title: str
    assigned_at: str
    assigned_by: str
    due_date: Optional[str] = None


class AdminDashboardResponse(BaseModel):
    total_users: int
    total_companies: int
    total_modules: int
    total_groups: int
    total_certificates: int
    recent_companies: list[CompanyResponse]
    recent_users: list[dict]
