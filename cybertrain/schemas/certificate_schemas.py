from pydantic import BaseModel
from typing import Optional


class CertificateModule(BaseModel):
    id: int
    title: str


class ComprehensiveCertificateResponse(BaseModel):
    learner_name: str
    issued_at: str
    total_modules_completed: int
    modules: list[CertificateModule]
    achievement_label: str
    download_count: int
    downloaded_at: Optional[str] = None


class ModuleCertificateResponse(BaseModel):
    learner_name: str
    module_id: int
    module_title: str
    completed_at: str
    certificate_issued_at: Optional[str] = None
