"""
Comprehensive certificate eligibility.

A learner receives one comprehensive certificate once every module in their resolved
assignment set is Completed. The first issued certificate is final: later assignment
changes neither revoke nor reissue it.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cybertrain.models.models import ComprehensiveCertificate, Module, ModuleProgress, ProgressStatus
from cybertrain.services.assignment_service import resolve_assigned_modules

logger = logging.getLogger(__name__)


def get_comprehensive_certificate(db: Session, user_id: int) -> Optional[ComprehensiveCertificate]:
    return db.query(ComprehensiveCertificate).filter(ComprehensiveCertificate.user_id == user_id).first()


def has_comprehensive_certificate(db: Session, user_id: int) -> bool:
    return get_comprehensive_certificate(db, user_id) is not None


def _first_incomplete(db: Session, user_id: int, modules: list[Module]) -> Optional[Module]:
    for module in modules:
        progress = (
            db.query(ModuleProgress)
            .filter(ModuleProgress.user_id == user_id, ModuleProgress.module_id == module.id)
            .first()
        )
        if progress is None or progress.status != ProgressStatus.COMPLETED:
            return module
    return None


def all_assigned_modules_completed(db: Session, user_id: int) -> bool:
    modules = resolve_assigned_modules(db, user_id)
    if not modules:
        return False
    return _first_incomplete(db, user_id, modules) is None


def check_and_issue_comprehensive_certificate(db: Session, user_id: int) -> Optional[ComprehensiveCertificate]:
    """
    Issue the learner's comprehensive certificate if they are eligible.

    Returns the existing certificate unchanged when one was already issued, the new one
    when the learner just became eligible, and None otherwise. A learner with no assigned
    modules is never eligible.
    """
    existing = get_comprehensive_certificate(db, user_id)
    if existing is not None:
        logger.debug("User %s already has a comprehensive certificate issued at %s", user_id, existing.issued_at)
        return existing

    modules = resolve_assigned_modules(db, user_id)
    if not modules:
        logger.info("User %s has no assigned modules; no comprehensive certificate", user_id)
        return None

    incomplete = _first_incomplete(db, user_id, modules)
    if incomplete is not None:
        logger.debug("User %s has not completed module %s; certificate not issued", user_id, incomplete.id)
        return None

    module_ids = [m.id for m in modules]
    now = datetime.utcnow()
    certificate = ComprehensiveCertificate(
        user_id=user_id,
        issued_at=now,
        completed_module_ids=module_ids,
        total_modules_completed=len(module_ids),
        download_count=0,
        date_created=now,
    )
    db.add(certificate)
    try:
        db.commit()
    except IntegrityError:
        # Another request issued it first; the unique user_id constraint keeps one row.
        db.rollback()
        logger.info("Comprehensive certificate for user %s was issued concurrently", user_id)
        return get_comprehensive_certificate(db, user_id)
    db.refresh(certificate)
    logger.info("Comprehensive certificate issued user=%s modules=%s", user_id, len(module_ids))
    return certificate


def certificate_modules(db: Session, certificate: ComprehensiveCertificate) -> list[Module]:
    """Modules recorded on the certificate, in display order."""
    module_ids = list(certificate.completed_module_ids or [])
    if not module_ids:
        return []
    return (
        db.query(Module)
        .filter(Module.id.in_(module_ids))
        .order_by(Module.order.asc(), Module.title.asc())
        .all()
    )


def record_download(db: Session, certificate: ComprehensiveCertificate) -> ComprehensiveCertificate:
    certificate.downloaded_at = datetime.utcnow()
    certificate.download_count = (certificate.download_count or 0) + 1
    db.commit()
    db.refresh(certificate)
    return certificate
