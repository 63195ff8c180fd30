"""
API schemas package. Import from submodules or from this package.

Example:
    from cybertrain.schemas import DashboardResponse, QuizSubmission
    from cybertrain.schemas.quiz_schemas import QuizSubmission
"""

from cybertrain.schemas.auth_schemas import (
    AuthTokenPayload,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
)
from cybertrain.schemas.user_schemas import (
    CompleteProfileRequest,
    MessageResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from cybertrain.schemas.training_schemas import (
    DashboardModule,
    DashboardResponse,
    LessonOutlineItem,
    LessonProgressRequest,
    LessonProgressResponse,
    LessonResponse,
    ModuleOutlineResponse,
    ModuleProgressInfo,
    QuizLink,
    QuizResultSummary,
)
from cybertrain.schemas.quiz_schemas import (
    AnswerBreakdown,
    QuizForTakingResponse,
    QuizResultDetailResponse,
    QuizSubmission,
    QuizSubmitResponse,
)
from cybertrain.schemas.certificate_schemas import (
    ComprehensiveCertificateResponse,
    ModuleCertificateResponse,
)

__all__ = [
    # auth
    "AuthTokenPayload",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    # account
    "CompleteProfileRequest",
    "MessageResponse",
    "UpdatePasswordRequest",
    "UserResponse",
    # training
    "DashboardModule",
    "DashboardResponse",
    "LessonOutlineItem",
    "LessonProgressRequest",
    "LessonProgressResponse",
    "LessonResponse",
    "ModuleOutlineResponse",
    "ModuleProgressInfo",
    "QuizLink",
    "QuizResultSummary",
    # quizzes
    "AnswerBreakdown",
    "QuizForTakingResponse",
    "QuizResultDetailResponse",
    "QuizSubmission",
    "QuizSubmitResponse",
    # certificates
    "ComprehensiveCertificateResponse",
    "ModuleCertificateResponse",
]
