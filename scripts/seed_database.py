#!/usr/bin/env python3
"""
Seed the database with an admin account, a demo company and a sample module.

Run: python scripts/seed_database.py
     python scripts/seed_database.py --reset      # drop all tables first

Safe to run repeatedly: existing rows are left untouched.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from cybertrain.config import SessionLocal, create_db, reset_db, settings  # noqa: E402
from cybertrain.models.models import (  # noqa: E402
    Company,
    Lesson,
    Module,
    Question,
    QuestionOption,
    Quiz,
    Role,
)
from cybertrain.utils.auth import create_user, get_user_by_email  # noqa: E402
from cybertrain.utils.logger import configure_logging  # noqa: E402

SAMPLE_LESSONS = [
    (
        "Recognising Phishing",
        "# Recognising Phishing\n\nPhishing emails try to trick you into revealing credentials.\n\n"
        "- Check the sender address\n- Hover over links before clicking\n- Be wary of urgency",
    ),
    (
        "Strong Passwords",
        "# Strong Passwords\n\nUse long passphrases and a password manager.\n\n"
        "| Weak | Strong |\n|------|--------|\n| password1 | correct-horse-battery-staple |",
    ),
    (
        "Reporting Incidents",
        "# Reporting Incidents\n\nReport anything suspicious to the security team straight away.",
    ),
]

SAMPLE_QUESTIONS = [
    (
        "What should you do before clicking a link in an unexpected email?",
        [("Hover over it to check the destination", True), ("Click it quickly", False), ("Forward it to colleagues", False)],
    ),
    (
        "Which password is strongest?",
        [("Summer2024", False), ("correct-horse-battery-staple", True), ("123456", False)],
    ),
]


def seed(logger) -> None:
    db = SessionLocal()
    try:
        company = db.query(Company).filter(Company.name == "Demo Company").first()
        if company is None:
            company = Company(name="Demo Company", description="Created by the seed script")
            db.add(company)
            db.commit()
            logger.info("Seeded company %s", company.id)

        if get_user_by_email(settings.ADMIN_EMAIL, db) is None:
            admin = create_user(
                settings.ADMIN_EMAIL,
                settings.ADMIN_PASSWORD,
                db,
                first_name="System",
                last_name="Administrator",
                role=Role.ADMIN,
                company_id=company.id,
                is_first_login=False,
                is_profile_complete=True,
            )
            logger.info("Seeded admin %s", admin.email)

        if db.query(Module).count() == 0:
            module = Module(
                title="Security Awareness Basics",
                description="Everyday habits that keep you and the company safe.",
                order=1,
            )
            for order, (title, content) in enumerate(SAMPLE_LESSONS, start=1):
                module.lessons.append(Lesson(title=title, content=content, order=order))
            db.add(module)
            db.flush()

            quiz = Quiz(lesson_id=module.lessons[0].id, title="Phishing Check", passing_score=70)
            for order, (text, options) in enumerate(SAMPLE_QUESTIONS, start=1):
                question = Question(text=text, order=order)
                question.options = [
                    QuestionOption(text=option, is_correct=correct, order=i)
                    for i, (option, correct) in enumerate(options, start=1)
                ]
                quiz.questions.append(question)
            db.add(quiz)
            db.commit()
            logger.info("Seeded module %s with %s lessons", module.id, len(SAMPLE_LESSONS))
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()

    logger = configure_logging()
    if args.reset:
        reset_db()
    else:
        create_db()
    seed(logger)
    return 0


if __name__ == "__main__":
    sys.exit(main())
