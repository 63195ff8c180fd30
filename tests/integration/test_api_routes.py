"""
API integration tests using FastAPI TestClient with in-memory DB.
"""
import pytest
from fastapi.testclient import TestClient

from cybertrain.models.models import ComprehensiveCertificate, ModuleProgress, ProgressStatus


def _answers_payload(quiz, correct=None):
    answers = []
    for i, question in enumerate(sorted(quiz.questions, key=lambda q: q.order)):
        right = correct is None or i < correct
        option = next(o for o in sorted(question.options, key=lambda o: o.order) if o.is_correct == right)
        answers.append({"question_id": question.id, "selected_option_id": option.id})
    return {"answers": answers}


@pytest.mark.integration
class TestHealthRoutes:
    """Health and root endpoints (no auth)."""

    def test_root_returns_healthy(self, api_client: TestClient):
        response = api_client.get("/")
        assert response.status_code == 200
        assert "Healthy" in response.json()["message"]

    def test_request_id_header_is_echoed(self, api_client: TestClient):
        response = api_client.get("/", headers={"x-request-id": "abc-123"})
        assert response.headers.get("x-request-id") == "abc-123"


@pytest.mark.integration
class TestAuthRoutes:
    """Auth: login, logout, me."""

    def test_login_success_sets_cookie(self, api_client: TestClient, make):
        user = make.user(email="login@example.com")
        response = api_client.post("/auth/login", json={"email": user.email, "password": "Passw0rd"})
        assert response.status_code == 200
        assert response.json()["token_set"] is True
        assert "access_token" in response.cookies

    def test_login_is_case_insensitive_on_email(self, api_client: TestClient, make):
        make.user(email="mixed@example.com")
        response = api_client.post("/auth/login", json={"email": "MIXED@example.com", "password": "Passw0rd"})
        assert response.status_code == 200

    def test_login_wrong_password_fails(self, api_client: TestClient, make):
        user = make.user()
        response = api_client.post("/auth/login", json={"email": user.email, "password": "nope"})
        assert response.status_code == 401

    def test_me_requires_auth(self, api_client: TestClient):
        assert api_client.get("/auth/me").status_code == 401

    def test_me_returns_current_user(self, make, login):
        user = make.user(first_name="Jane", last_name="Doe")
        client = login(user)
        data = client.get("/auth/me").json()
        assert data["email"] == user.email
        assert data["display_name"] == "Jane Doe"
        assert data["role"] == "User"
        assert data["last_login"] is not None

    def test_logout_clears_cookie(self, make, login):
        client = login(make.user())
        assert client.post("/auth/logout").status_code == 200
        client.cookies.clear()
        assert client.get("/auth/me").status_code == 401


@pytest.mark.integration
class TestAccountRoutes:
    def test_complete_profile(self, make, login):
        user = make.user()
        client = login(user)
        response = client.post("/account/complete-profile", json={"first_name": "Grace", "last_name": "Hopper"})
        assert response.status_code == 200
        data = response.json()
        assert data["display_name"] == "Grace Hopper"
        assert data["is_profile_complete"] is True

    def test_change_password_enforces_policy(self, make, login):
        client = login(make.user())
        response = client.patch(
            "/account/password",
            json={"current_password": "Passw0rd", "new_password": "weak", "confirm_new_password": "weak"},
        )
        assert response.status_code == 400

    def test_change_password(self, make, login, api_client):
        user = make.user()
        client = login(user)
        response = client.patch(
            "/account/password",
            json={"current_password": "Passw0rd", "new_password": "N3wSecret", "confirm_new_password": "N3wSecret"},
        )
        assert response.status_code == 200
        client.cookies.clear()
        assert api_client.post("/auth/login", json={"email": user.email, "password": "N3wSecret"}).status_code == 200


@pytest.mark.integration
class TestTrainingRoutes:
    def test_dashboard_lists_assigned_modules(self, make, login):
        user = make.user()
        module = make.module(title="Phishing", lessons=2)
        make.assign(user, module)
        make.module(title="Unassigned")
        data = login(user).get("/training/dashboard").json()
        assert [m["title"] for m in data["modules"]] == ["Phishing"]
        assert data["total_modules"] == 1
        assert data["all_modules_completed"] is False
        assert data["has_comprehensive_certificate"] is False

    def test_unassigned_module_is_forbidden(self, make, login):
        user = make.user()
        module = make.module()
        assert login(user).get(f"/training/modules/{module.id}").status_code == 403

    def test_module_outline_unlocks_sequentially(self, make, login):
        user = make.user()
        module = make.module(lessons=3)
        make.assign(user, module)
        data = login(user).get(f"/training/modules/{module.id}").json()
        assert [lesson["is_unlocked"] for lesson in data["lessons"]] == [True, False, False]
        assert data["progress"]["status"] == "InProgress"
        assert data["next_lesson_index"] == 0

    def test_locked_lesson_is_forbidden(self, make, login):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        second = make.lessons(module)[1]
        assert login(user).get(f"/training/lessons/{second.id}").status_code == 403

    def test_view_lesson_renders_html(self, make, login):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        first = make.lessons(module)[0]
        data = login(user).get(f"/training/lessons/{first.id}").json()
        assert "<h1>" in data["content_html"]
        assert data["status"] == "InProgress"
        assert data["next_lesson_id"] == make.lessons(module)[1].id

    def test_progress_records_scroll_and_ignores_downgrade(self, make, login):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        first = make.lessons(module)[0]
        client = login(user)
        client.post(f"/training/lessons/{first.id}/complete")
        response = client.post(
            f"/training/lessons/{first.id}/progress", json={"status": "InProgress", "scroll_position": 120}
        )
        data = response.json()
        assert data["status"] == "Completed"
        assert data["scroll_position"] == 120
        assert data["module_progress"]["completed_lessons"] == 1

    def test_completing_all_lessons_issues_certificate(self, make, login, db_session):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        client = login(user)
        for lesson in make.lessons(module):
            assert client.post(f"/training/lessons/{lesson.id}/complete").status_code == 200

        data = client.get("/training/dashboard").json()
        assert data["all_modules_completed"] is True
        assert data["has_comprehensive_certificate"] is True
        assert data["overall_progress"] == pytest.approx(100.0)
        db_session.expire_all()
        assert db_session.query(ComprehensiveCertificate).filter_by(user_id=user.id).count() == 1


@pytest.mark.integration
class TestQuizRoutes:
    def _learner_with_quiz(self, make, questions=3, passing_score=70):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        lesson = make.lessons(module)[0]
        quiz = make.quiz(lesson, questions=questions, passing_score=passing_score)
        return user, lesson, quiz

    def test_taking_view_hides_correct_flags(self, make, login):
        user, _, quiz = self._learner_with_quiz(make)
        data = login(user).get(f"/training/quizzes/{quiz.id}").json()
        assert len(data["questions"]) == 3
        for question in data["questions"]:
            for option in question["options"]:
                assert set(option) == {"id", "text"}
        assert data["previous_result"] is None

    def test_passing_submission_completes_lesson(self, make, login, db_session):
        user, lesson, quiz = self._learner_with_quiz(make)
        client = login(user)
        response = client.post(f"/training/quizzes/{quiz.id}/submit", json=_answers_payload(quiz))
        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 100
        assert data["passed"] is True
        assert data["lesson_completed"] is True

        detail = client.get(f"/training/quiz-results/{data['result_id']}").json()
        assert detail["correct_answers"] == 3
        assert all(a["is_correct"] for a in detail["answers"])

    def test_failing_submission_scores_truncated(self, make, login):
        user, _, quiz = self._learner_with_quiz(make)
        data = login(user).post(f"/training/quizzes/{quiz.id}/submit", json=_answers_payload(quiz, correct=2)).json()
        assert data["score"] == 66
        assert data["passed"] is False
        assert data["lesson_completed"] is False

    def test_incomplete_submission_is_422(self, make, login):
        user, _, quiz = self._learner_with_quiz(make)
        payload = _answers_payload(quiz)
        payload["answers"] = payload["answers"][:1]
        response = login(user).post(f"/training/quizzes/{quiz.id}/submit", json=payload)
        assert response.status_code == 422

    def test_other_learners_result_is_not_found(self, make, login):
        user, _, quiz = self._learner_with_quiz(make)
        client = login(user)
        result_id = client.post(f"/training/quizzes/{quiz.id}/submit", json=_answers_payload(quiz)).json()["result_id"]
        other = make.user()
        make.assign(other, quiz.lesson.module)
        assert login(other).get(f"/training/quiz-results/{result_id}").status_code == 404

    def test_quiz_in_unassigned_module_is_forbidden(self, make, login):
        user = make.user()
        quiz = make.quiz(make.lessons(make.module())[0])
        assert login(user).get(f"/training/quizzes/{quiz.id}").status_code == 403


@pytest.mark.integration
class TestCertificateRoutes:
    def _finished_learner(self, make, login, first_name="Jane", last_name="Doe", title="Safe Browsing"):
        user = make.user(first_name=first_name, last_name=last_name)
        module = make.module(title=title, lessons=1)
        make.assign(user, module)
        client = login(user)
        client.post(f"/training/lessons/{make.lessons(module)[0].id}/complete")
        return user, module, client

    def test_certificate_unavailable_before_completion(self, make, login):
        user = make.user()
        make.assign(user, make.module(lessons=1))
        assert login(user).get("/training/certificate").status_code == 404

    def test_certificate_details(self, make, login):
        _, module, client = self._finished_learner(make, login)
        data = client.get("/training/certificate").json()
        assert data["learner_name"] == "Jane Doe"
        assert data["total_modules_completed"] == 1
        assert data["achievement_label"] == "Cybersecurity Training - Modules: Safe Browsing"
        assert [m["id"] for m in data["modules"]] == [module.id]

    def test_download_comprehensive_pdf(self, make, login, db_session):
        user, _, client = self._finished_learner(make, login)
        response = client.post("/training/certificate/download")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "CyberSecurity_Certificate_Jane_Doe.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")
        db_session.expire_all()
        certificate = db_session.query(ComprehensiveCertificate).filter_by(user_id=user.id).one()
        assert certificate.download_count == 1

    def test_render_failure_leaves_counter_untouched(self, make, login, db_session, monkeypatch):
        from cybertrain.services import certificate_renderer

        def boom(*args, **kwargs):
            raise RuntimeError("no fonts")

        user, _, client = self._finished_learner(make, login)
        monkeypatch.setattr(certificate_renderer.canvas, "Canvas", boom)
        response = client.post("/training/certificate/download")
        assert response.status_code == 500
        assert response.json()["detail"] == "An error occurred while generating the certificate. Please try again."
        db_session.expire_all()
        certificate = db_session.query(ComprehensiveCertificate).filter_by(user_id=user.id).one()
        assert certificate.download_count == 0

    def test_module_certificate_download(self, make, login):
        _, module, client = self._finished_learner(make, login)
        assert client.get(f"/training/modules/{module.id}/certificate").json()["module_title"] == "Safe Browsing"
        response = client.post(f"/training/modules/{module.id}/certificate/download")
        assert response.status_code == 200
        assert "Certificate_Safe_Browsing_Jane_Doe.pdf" in response.headers["content-disposition"]

    def test_module_download_with_non_latin_title(self, make, login):
        _, module, client = self._finished_learner(make, login, title="Phishing – Basics")
        response = client.post(f"/training/modules/{module.id}/certificate/download")
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="Certificate_Phishing_Basics_Jane_Doe.pdf"' in disposition
        assert "filename*=UTF-8''Certificate_Phishing_%E2%80%93_Basics_Jane_Doe.pdf" in disposition

    def test_comprehensive_download_with_non_latin_name(self, make, login, db_session):
        user, _, client = self._finished_learner(make, login, first_name="Łukasz", last_name="Nowak")
        response = client.post("/training/certificate/download")
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="CyberSecurity_Certificate_ukasz_Nowak.pdf"' in disposition
        assert "filename*=UTF-8''CyberSecurity_Certificate_%C5%81ukasz_Nowak.pdf" in disposition
        db_session.expire_all()
        certificate = db_session.query(ComprehensiveCertificate).filter_by(user_id=user.id).one()
        assert certificate.download_count == 1

    def test_quote_in_title_does_not_break_header(self, make, login):
        _, module, client = self._finished_learner(make, login, title='The "Urgent" Invoice')
        response = client.post(f"/training/modules/{module.id}/certificate/download")
        assert response.status_code == 200
        assert 'filename="Certificate_The_Urgent_Invoice_Jane_Doe.pdf"' in response.headers["content-disposition"]

    def test_module_certificate_requires_completion(self, make, login):
        user = make.user()
        module = make.module(lessons=2)
        make.assign(user, module)
        assert login(user).get(f"/training/modules/{module.id}/certificate").status_code == 404


@pytest.mark.integration
class TestAdminRoutes:
    def test_learner_cannot_reach_admin(self, make, login):
        client = login(make.user())
        assert client.get("/admin/modules").status_code == 403
        assert client.get("/admin/dashboard").status_code == 403

    def test_content_crud_flow(self, make, login):
        client = login(make.admin())
        module = client.post("/admin/modules", json={"title": "Passwords", "order": 1}).json()
        assert client.post("/admin/modules", json={"title": "Duplicate", "order": 1}).status_code == 400

        first = client.post(f"/admin/modules/{module['id']}/lessons", json={"title": "Intro", "content": "# Hi"}).json()
        second = client.post(f"/admin/modules/{module['id']}/lessons", json={"title": "Next"}).json()
        assert (first["order"], second["order"]) == (1, 2)

        quiz = client.post("/admin/quizzes", json={"lesson_id": first["id"], "title": "Check"}).json()
        assert quiz["passing_score"] == 70

        bad = client.post(
            "/admin/questions",
            json={
                "quiz_id": quiz["id"],
                "text": "Pick one",
                "order": 1,
                "options": [{"text": "a"}, {"text": "b"}],
            },
        )
        assert bad.status_code == 400
        good = client.post(
            "/admin/questions",
            json={
                "quiz_id": quiz["id"],
                "text": "Pick one",
                "order": 1,
                "options": [{"text": "a", "is_correct": True}, {"text": "b"}],
            },
        )
        assert good.status_code == 201
        assert [o["is_correct"] for o in good.json()["options"]] == [True, False]

        assert client.delete(f"/admin/lessons/{first['id']}").status_code == 200
        lessons = client.get(f"/admin/modules/{module['id']}/lessons").json()
        assert [(lesson["title"], lesson["order"]) for lesson in lessons] == [("Next", 1)]

    def test_move_lesson_between_modules(self, make, login):
        client = login(make.admin())
        source = make.module(lessons=3)
        target = make.module(lessons=1)
        moving = make.lessons(source)[1]
        response = client.patch(f"/admin/lessons/{moving.id}", json={"module_id": target.id, "order": 1})
        assert response.status_code == 200
        assert [lesson["order"] for lesson in client.get(f"/admin/modules/{source.id}/lessons").json()] == [1, 2]
        assert [lesson["id"] for lesson in client.get(f"/admin/modules/{target.id}/lessons").json()][0] == moving.id

    def test_group_assignment_grants_module(self, make, login):
        admin = make.admin()
        learner = make.user()
        module = make.module(lessons=1)
        client = login(admin)

        company = client.post("/admin/companies", json={"name": "Acme"}).json()
        group = client.post("/admin/groups", json={"name": "Sales", "company_id": company["id"]}).json()
        assert client.post("/admin/groups", json={"name": "Sales", "company_id": company["id"]}).status_code == 400
        assert client.post(f"/admin/groups/{group['id']}/members", json={"user_id": learner.id}).status_code == 201
        assigned = client.post(f"/admin/groups/{group['id']}/assignments", json={"module_id": module.id})
        assert assigned.status_code == 201
        assert assigned.json()["member_count"] == 1

        modules = client.get(f"/admin/users/{learner.id}/modules").json()
        assert [m["module_id"] for m in modules] == [module.id]

        client.patch(f"/admin/groups/{group['id']}/members/{learner.id}", json={"is_active": False})
        assert client.get(f"/admin/users/{learner.id}/modules").json() == []

    def test_company_with_users_cannot_be_deleted(self, make, login):
        client = login(make.admin())
        company = make.company()
        make.user(company_id=company.id)
        assert client.delete(f"/admin/companies/{company.id}").status_code == 400

    def test_user_management(self, make, login):
        client = login(make.admin())
        weak = client.post("/admin/users", json={"email": "new@example.com", "password": "weak"})
        assert weak.status_code == 400
        created = client.post(
            "/admin/users",
            json={"email": "new@example.com", "password": "Str0ngPass", "first_name": "New", "last_name": "Hire"},
        )
        assert created.status_code == 201
        user_id = created.json()["id"]
        module = make.module()
        assert client.post(f"/admin/users/{user_id}/assignments", json={"module_id": module.id}).status_code == 201
        assert client.post(f"/admin/users/{user_id}/assignments", json={"module_id": module.id}).status_code == 400
        assert client.delete(f"/admin/users/{user_id}").status_code == 200
        assert client.get(f"/admin/users/{user_id}").status_code == 404

    def test_admin_dashboard_totals(self, make, login):
        admin = make.admin()
        make.user()
        make.module()
        data = login(admin).get("/admin/dashboard").json()
        assert data["total_users"] == 2
        assert data["total_modules"] == 1
        assert data["total_certificates"] == 0

    def test_completion_stats_on_group_assignment(self, make, login, db_session):
        admin = make.admin()
        learner = make.user()
        group = make.group()
        make.join(learner, group)
        module = make.module(lessons=1)
        make.assign_group(group, module)
        db_session.add(
            ModuleProgress(
                user_id=learner.id,
                module_id=module.id,
                status=ProgressStatus.COMPLETED,
                completed_lessons=1,
                total_lessons=1,
            )
        )
        db_session.commit()
        stats = login(admin).get(f"/admin/groups/{group.id}/assignments").json()
        assert stats[0]["completed_count"] == 1
        assert stats[0]["completion_percentage"] == pytest.approx(100.0)
