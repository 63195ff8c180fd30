from cybertrain.config import Base
from sqlalchemy import (
    Column,
    Integer,
    String,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Boolean,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum


class ProgressStatus(str, Enum):
    """Lesson and module progress. Values are ordered: a status only moves forward."""
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ProgressStatus.NOT_STARTED: 0,
    ProgressStatus.IN_PROGRESS: 1,
    ProgressStatus.COMPLETED: 2,
}


class Role(str, Enum):
    ADMIN = "Admin"
    USER = "User"


class Company(Base):
    __tablename__ = "companies"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)

    users = relationship("User", backref="company")
    groups = relationship("UserGroup", backref="company", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    role = Column(SQLEnum(Role), default=Role.USER, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=True)
    is_first_login = Column(Boolean, default=True, nullable=False)
    is_profile_complete = Column(Boolean, default=False, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    memberships = relationship("GroupMembership", backref="user", cascade="all, delete-orphan")
    module_assignments = relationship("ModuleAssignment", backref="user", cascade="all, delete-orphan")
    lesson_progress = relationship("LessonProgress", backref="user", cascade="all, delete-orphan")
    module_progress = relationship("ModuleProgress", backref="user", cascade="all, delete-orphan")
    quiz_results = relationship("QuizResult", backref="user", cascade="all, delete-orphan")
    comprehensive_certificate = relationship(
        "ComprehensiveCertificate", backref="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        full = " ".join(p.strip() for p in (self.first_name or "", self.last_name or "") if p and p.strip())
        return full or self.email.split("@", 1)[0]


class UserGroup(Base):
    __tablename__ = "user_groups"
    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_group_company_name"),)
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)

    memberships = relationship("GroupMembership", backref="group", cascade="all, delete-orphan")
    module_assignments = relationship("GroupAssignment", backref="group", cascade="all, delete-orphan")


class GroupMembership(Base):
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_membership_user_group"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    group_id = Column(Integer, ForeignKey("user_groups.id"), index=True, nullable=False)
    date_joined = Column(DateTime, default=datetime.utcnow, nullable=False)
    joined_by = Column(String, nullable=True)  # admin email
    is_active = Column(Boolean, default=True, nullable=False)


class Module(Base):
    __tablename__ = "modules"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    order = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)
    date_modified = Column(DateTime, nullable=True)

    lessons = relationship("Lesson", backref="module", cascade="all, delete-orphan")
    user_assignments = relationship("ModuleAssignment", backref="module", cascade="all, delete-orphan")
    group_assignments = relationship("GroupAssignment", backref="module", cascade="all, delete-orphan")
    progress = relationship("ModuleProgress", backref="module", cascade="all, delete-orphan")


class Lesson(Base):
    __tablename__ = "lessons"
    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False, default="")  # markdown
    order = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)
    date_modified = Column(DateTime, nullable=True)

    quizzes = relationship("Quiz", backref="lesson", cascade="all, delete-orphan")
    progress = relationship("LessonProgress", backref="lesson", cascade="all, delete-orphan")


class Quiz(Base):
    __tablename__ = "quizzes"
    id = Column(Integer, primary_key=True, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), index=True, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    passing_score = Column(Integer, default=70, nullable=False)  # percentage
    is_active = Column(Boolean, default=True, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)
    date_modified = Column(DateTime, nullable=True)

    questions = relationship("Question", backref="quiz", cascade="all, delete-orphan")
    results = relationship("QuizResult", backref="quiz", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "questions"
    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    order = Column(Integer, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)

    options = relationship("QuestionOption", backref="question", cascade="all, delete-orphan")
    answers = relationship("QuestionAnswer", backref="question", cascade="all, delete-orphan")


class QuestionOption(Base):
    __tablename__ = "question_options"
    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    order = Column(Integer, nullable=False, default=1)

    # Removing an option nulls the selected_option_id of recorded answers.
    answers = relationship("QuestionAnswer", backref="selected_option")


class ModuleAssignment(Base):
    __tablename__ = "module_assignments"
    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_assignment_user_module"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    assigned_by = Column(String, nullable=False, default="")  # admin email
    due_date = Column(DateTime, nullable=True)


class GroupAssignment(Base):
    __tablename__ = "group_assignments"
    __table_args__ = (UniqueConstraint("group_id", "module_id", name="uq_assignment_group_module"),)
    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("user_groups.id"), index=True, nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    assigned_by = Column(String, nullable=False, default="")
    due_date = Column(DateTime, nullable=True)


class LessonProgress(Base):
    __tablename__ = "lesson_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), index=True, nullable=False)
    status = Column(SQLEnum(ProgressStatus), default=ProgressStatus.NOT_STARTED, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    scroll_position = Column(Integer, default=0, nullable=False)  # resume point


class ModuleProgress(Base):
    __tablename__ = "module_progress"
    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_module_progress_user_module"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    status = Column(SQLEnum(ProgressStatus), default=ProgressStatus.NOT_STARTED, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_lessons = Column(Integer, default=0, nullable=False)
    total_lessons = Column(Integer, default=0, nullable=False)
    certificate_issued = Column(Boolean, default=False, nullable=False)
    certificate_issued_at = Column(DateTime, nullable=True)


class QuizResult(Base):
    __tablename__ = "quiz_results"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), index=True, nullable=False)
    score = Column(Integer, nullable=False)  # percentage, truncated
    passed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    answers = relationship("QuestionAnswer", backref="result", cascade="all, delete-orphan")


class QuestionAnswer(Base):
    __tablename__ = "question_answers"
    id = Column(Integer, primary_key=True, index=True)
    quiz_result_id = Column(Integer, ForeignKey("quiz_results.id"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), index=True, nullable=False)
    selected_option_id = Column(Integer, ForeignKey("question_options.id", ondelete="SET NULL"), nullable=True)
    is_correct = Column(Boolean, default=False, nullable=False)


class ComprehensiveCertificate(Base):
    __tablename__ = "comprehensive_certificates"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    issued_at = Column(DateTime, nullable=False)
    completed_module_ids = Column(JSON, nullable=False)  # list[int], in module order
    total_modules_completed = Column(Integer, nullable=False)
    downloaded_at = Column(DateTime, nullable=True)
    download_count = Column(Integer, default=0, nullable=False)
    date_created = Column(DateTime, default=datetime.utcnow, nullable=False)
