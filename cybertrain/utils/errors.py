"""
Domain errors raised by services. The app maps them to HTTP responses in cybertrain.api.
"""


class TrainingError(Exception):
    """Base class for errors the request boundary turns into a user-visible message."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(TrainingError):
    """A referenced learner, module, lesson, quiz or other entity does not exist."""

    status_code = 404


class ValidationFailure(TrainingError):
    """A submission or form breaks a rule; nothing was persisted."""

    status_code = 422


class PermissionDenied(TrainingError):
    status_code = 403


class CertificateRenderError(TrainingError):
    status_code = 500


class RuleViolation(TrainingError):
    """An admin form breaks a content or organisation rule (duplicate order, missing correct option)."""

    status_code = 400
