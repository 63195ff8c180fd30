"""Unit tests for comprehensive certificate eligibility and issuance."""
import pytest

from cybertrain.models.models import ComprehensiveCertificate, ProgressStatus
from cybertrain.services import certificate_service
from cybertrain.services.progress_service import ProgressService


def _finish(db_session, make, user, module):
    service = ProgressService(db_session)
    for lesson in make.lessons(module):
        service.record_lesson_progress(user.id, lesson.id, ProgressStatus.COMPLETED)


@pytest.mark.unit
class TestCheckAndIssue:
    def test_two_completed_modules_issue_certificate(self, db_session, make):
        user = make.user()
        m1 = make.module(lessons=3, order=1)
        m2 = make.module(lessons=2, order=2)
        make.assign(user, m1)
        make.assign(user, m2)
        _finish(db_session, make, user, m1)
        assert not certificate_service.has_comprehensive_certificate(db_session, user.id)

        _finish(db_session, make, user, m2)
        certificate = certificate_service.get_comprehensive_certificate(db_session, user.id)
        assert certificate is not None
        assert certificate.completed_module_ids == [m1.id, m2.id]
        assert certificate.total_modules_completed == 2
        assert certificate.issued_at is not None

    def test_is_idempotent(self, db_session, make):
        user = make.user()
        module = make.module(lessons=1)
        make.assign(user, module)
        _finish(db_session, make, user, module)

        first = certificate_service.check_and_issue_comprehensive_certificate(db_session, user.id)
        second = certificate_service.check_and_issue_comprehensive_certificate(db_session, user.id)
        assert first.id == second.id
        assert first.issued_at == second.issued_at
        assert db_session.query(ComprehensiveCertificate).count() == 1

    def test_no_assignments_never_eligible(self, db_session, make):
        user = make.user()
        module = make.module(lessons=1)
        _finish(db_session, make, user, module)
        assert certificate_service.check_and_issue_comprehensive_certificate(db_session, user.id) is None
        assert not certificate_service.all_assigned_modules_completed(db_session, user.id)

    def test_incomplete_module_blocks_issuance(self, db_session, make):
        user = make.user()
        done, pending = make.module(lessons=1), make.module(lessons=2)
        make.assign(user, done)
        make.assign(user, pending)
        _finish(db_session, make, user, done)
        assert certificate_service.check_and_issue_comprehensive_certificate(db_session, user.id) is None

    def test_group_granted_module_is_required(self, db_session, make):
        user = make.user()
        direct, granted = make.module(lessons=1, order=1), make.module(lessons=1, order=2)
        make.assign(user, direct)
        group = make.group()
        make.join(user, group)
        make.assign_group(group, granted)

        _finish(db_session, make, user, direct)
        assert not certificate_service.has_comprehensive_certificate(db_session, user.id)
        _finish(db_session, make, user, granted)
        certificate = certificate_service.get_comprehensive_certificate(db_session, user.id)
        assert certificate.completed_module_ids == [direct.id, granted.id]

    def test_later_assignment_does_not_revoke(self, db_session, make):
        user = make.user()
        module = make.module(lessons=1)
        make.assign(user, module)
        _finish(db_session, make, user, module)
        make.assign(user, make.module(lessons=1))

        certificate = certificate_service.check_and_issue_comprehensive_certificate(db_session, user.id)
        assert certificate is not None
        assert certificate.total_modules_completed == 1


@pytest.mark.unit
class TestCertificateRecords:
    def test_record_download_counts(self, db_session, make):
        user = make.user()
        module = make.module(lessons=1)
        make.assign(user, module)
        _finish(db_session, make, user, module)
        certificate = certificate_service.get_comprehensive_certificate(db_session, user.id)

        certificate_service.record_download(db_session, certificate)
        certificate_service.record_download(db_session, certificate)
        assert certificate.download_count == 2
        assert certificate.downloaded_at is not None

    def test_certificate_modules_in_display_order(self, db_session, make):
        user = make.user()
        late, early = make.module(lessons=1, order=9), make.module(lessons=1, order=2)
        make.assign(user, late)
        make.assign(user, early)
        _finish(db_session, make, user, late)
        _finish(db_session, make, user, early)
        certificate = certificate_service.get_comprehensive_certificate(db_session, user.id)
        assert [m.id for m in certificate_service.certificate_modules(db_session, certificate)] == [early.id, late.id]
