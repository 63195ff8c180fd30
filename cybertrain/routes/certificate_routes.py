"""
Certificate endpoints: the comprehensive certificate and per-module certificates.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import ModuleProgress, ProgressStatus, User
from cybertrain.routes.training_routes import get_accessible_module, learner
from cybertrain.schemas.certificate_schemas import (
    CertificateModule,
    ComprehensiveCertificateResponse,
    ModuleCertificateResponse,
)
from cybertrain.services import certificate_renderer, certificate_service
from cybertrain.utils.auth import require_action
from cybertrain.utils.common import content_disposition, iso_format, iso_or_none
from cybertrain.utils.errors import NotFoundError
from cybertrain.utils.logger import log_request
from cybertrain.utils.permissions import Action

logger = logging.getLogger(__name__)

certificate_routes = APIRouter()

downloader = require_action(Action.DOWNLOAD_CERTIFICATE)


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)},
    )


def _comprehensive_or_404(db: Session, user: User):
    certificate = certificate_service.get_comprehensive_certificate(db, user.id)
    if certificate is None:
        certificate = certificate_service.check_and_issue_comprehensive_certificate(db, user.id)
    if certificate is None:
        raise NotFoundError("Comprehensive certificate is not yet available. Complete all assigned modules first.")
    return certificate


def _completed_module_progress(db: Session, user: User, module_id: int) -> ModuleProgress:
    progress = (
        db.query(ModuleProgress)
        .filter(ModuleProgress.user_id == user.id, ModuleProgress.module_id == module_id)
        .first()
    )
    if progress is None or progress.status != ProgressStatus.COMPLETED:
        raise NotFoundError("Certificate is only available for completed modules.")
    return progress


@certificate_routes.get("/certificate", response_model=ComprehensiveCertificateResponse)
async def comprehensive_certificate(
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> ComprehensiveCertificateResponse:
    certificate = _comprehensive_or_404(db, current_user)
    modules = certificate_service.certificate_modules(db, certificate)
    return ComprehensiveCertificateResponse(
        learner_name=current_user.display_name,
        issued_at=iso_format(certificate.issued_at),
        total_modules_completed=certificate.total_modules_completed,
        modules=[CertificateModule(id=m.id, title=m.title) for m in modules],
        achievement_label=certificate_renderer.comprehensive_label(m.title for m in modules),
        download_count=certificate.download_count,
        downloaded_at=iso_or_none(certificate.downloaded_at),
    )


@certificate_routes.post("/certificate/download")
async def download_comprehensive_certificate(
    current_user: User = Depends(downloader),
    db: Session = Depends(get_db),
) -> Response:
    """Render the comprehensive certificate; the download is counted only once the response is built."""
    certificate = _comprehensive_or_404(db, current_user)
    modules = certificate_service.certificate_modules(db, certificate)
    with log_request(logger, f"render comprehensive certificate user={current_user.id}"):
        pdf = certificate_renderer.render_certificate(
            current_user.display_name,
            certificate_renderer.comprehensive_label(m.title for m in modules),
            certificate.issued_at,
        )
    filename = certificate_renderer.comprehensive_filename(current_user.first_name or "", current_user.last_name or "")
    response = _pdf_response(pdf, filename)
    certificate_service.record_download(db, certificate)
    return response


@certificate_routes.get("/modules/{module_id}/certificate", response_model=ModuleCertificateResponse)
async def module_certificate(
    module_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> ModuleCertificateResponse:
    module = get_accessible_module(db, current_user, module_id)
    progress = _completed_module_progress(db, current_user, module.id)
    return ModuleCertificateResponse(
        learner_name=current_user.display_name,
        module_id=module.id,
        module_title=module.title,
        completed_at=iso_format(progress.completed_at or datetime.utcnow()),
        certificate_issued_at=iso_or_none(progress.certificate_issued_at),
    )


@certificate_routes.post("/modules/{module_id}/certificate/download")
async def download_module_certificate(
    module_id: int,
    current_user: User = Depends(downloader),
    db: Session = Depends(get_db),
) -> Response:
    module = get_accessible_module(db, current_user, module_id)
    progress = _completed_module_progress(db, current_user, module.id)
    with log_request(logger, f"render module certificate user={current_user.id} module={module.id}"):
        pdf = certificate_renderer.render_certificate(
            current_user.display_name,
            certificate_renderer.module_label(module.title),
            progress.completed_at or datetime.utcnow(),
        )
    filename = certificate_renderer.module_filename(
        module.title, current_user.first_name or "", current_user.last_name or ""
    )
    return _pdf_response(pdf, filename)
