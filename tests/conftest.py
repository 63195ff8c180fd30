"""
Pytest configuration and shared fixtures for the test suite.
Ensures proper Python path and provides common fixtures for unit and integration tests.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Keep the app's own database and log files out of the working tree.
_scratch = Path(tempfile.mkdtemp(prefix="cybertrain-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_scratch / 'cybertrain.db'}")
os.environ.setdefault("LOG_DIR", str(_scratch / "logs"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


# ----- In-memory DB (for tests that need DB without touching real DB) -----
@pytest.fixture
def in_memory_engine():
    """Create an in-memory SQLite engine for tests."""
    return create_engine("sqlite:///:memory:", echo=False)


@pytest.fixture
def db_session(in_memory_engine):
    """Create an in-memory database session. Uses cybertrain.config.Base for schema."""
    import cybertrain.models  # noqa: F401
    from cybertrain.config import Base
    Base.metadata.create_all(in_memory_engine)
    SessionLocal = sessionmaker(bind=in_memory_engine)
    session = SessionLocal()
    yield session
    session.close()


class Factory:
    """Builds learners, content and assignments directly in a session."""

    PASSWORD = "Passw0rd"

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, email=None, role=None, first_name="Test", last_name="Learner", **fields):
        from cybertrain.models.models import Role, User
        from cybertrain.utils.jwt import get_password_hash
        user = User(
            email=email or f"learner{self._next()}@example.com",
            hashed_password=get_password_hash(self.PASSWORD),
            first_name=first_name,
            last_name=last_name,
            role=role or Role.USER,
            is_profile_complete=True,
            is_first_login=False,
            **fields,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def admin(self, email="admin@example.com"):
        from cybertrain.models.models import Role
        return self.user(email=email, role=Role.ADMIN, first_name="Ada", last_name="Admin")

    def module(self, title=None, lessons=1, order=None, is_active=True):
        from cybertrain.models.models import Lesson, Module
        n = self._next()
        module = Module(title=title or f"Module {n}", order=order if order is not None else n, is_active=is_active)
        for i in range(1, lessons + 1):
            module.lessons.append(Lesson(title=f"Lesson {i}", content=f"# Lesson {i}\n\nBody", order=i))
        self.db.add(module)
        self.db.commit()
        return module

    def lessons(self, module):
        return sorted(module.lessons, key=lambda lesson: lesson.order)

    def quiz(self, lesson, questions=3, options=3, passing_score=70, is_active=True):
        """Quiz whose first option is the correct one for every question."""
        from cybertrain.models.models import Question, QuestionOption, Quiz
        quiz = Quiz(lesson_id=lesson.id, title=f"Quiz {self._next()}", passing_score=passing_score, is_active=is_active)
        for q in range(1, questions + 1):
            question = Question(text=f"Question {q}?", order=q)
            question.options = [
                QuestionOption(text=f"Option {q}.{o}", is_correct=(o == 1), order=o)
                for o in range(1, options + 1)
            ]
            quiz.questions.append(question)
        self.db.add(quiz)
        self.db.commit()
        return quiz

    def company(self, name=None):
        from cybertrain.models.models import Company
        company = Company(name=name or f"Company {self._next()}")
        self.db.add(company)
        self.db.commit()
        return company

    def group(self, company=None, name=None):
        from cybertrain.models.models import UserGroup
        company = company or self.company()
        group = UserGroup(name=name or f"Group {self._next()}", company_id=company.id)
        self.db.add(group)
        self.db.commit()
        return group

    def join(self, user, group, is_active=True):
        from cybertrain.models.models import GroupMembership
        membership = GroupMembership(user_id=user.id, group_id=group.id, is_active=is_active)
        self.db.add(membership)
        self.db.commit()
        return membership

    def assign(self, user, module):
        from cybertrain.models.models import ModuleAssignment
        assignment = ModuleAssignment(user_id=user.id, module_id=module.id, assigned_by="admin@example.com")
        self.db.add(assignment)
        self.db.commit()
        return assignment

    def assign_group(self, group, module):
        from cybertrain.models.models import GroupAssignment
        assignment = GroupAssignment(group_id=group.id, module_id=module.id, assigned_by="admin@example.com")
        self.db.add(assignment)
        self.db.commit()
        return assignment


def _answers_for(quiz, correct=None):
    """Answers for every question; only the first ``correct`` are right (all when None)."""
    from cybertrain.services.quiz_service import SubmittedAnswer
    questions = sorted(quiz.questions, key=lambda q: q.order)
    answers = []
    for i, question in enumerate(questions):
        options = sorted(question.options, key=lambda o: o.order)
        right = correct is None or i < correct
        option = next(o for o in options if o.is_correct == right)
        answers.append(SubmittedAnswer(question.id, option.id))
    return answers


@pytest.fixture
def make(db_session):
    return Factory(db_session)


@pytest.fixture
def answers_for():
    return _answers_for
