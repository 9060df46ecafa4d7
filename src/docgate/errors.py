"""Exception hierarchy shared by the crawl, review and upload layers."""


class DocgateError(Exception):
    """Base error carrying a stable machine-readable code."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ConfigError(DocgateError):
    """Source configuration failed validation."""

    code = "INVALID_CONFIG"


class NotFoundError(DocgateError):
    code = "NOT_FOUND"


class InvalidStatusError(DocgateError):
    """A review record was asked to leave a terminal state."""

    code = "INVALID_STATUS"


class InvalidRequestError(DocgateError):
    code = "INVALID_REQUEST"


class ExtractionError(DocgateError):
    code = "EXTRACTION_FAILED"


class IngestError(DocgateError):
    """The remote ingest endpoint did not accept a batch."""

    code = "UPLOAD_FAILED"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message, code)
        self.status_code = status_code


class TransientIngestError(IngestError):
    """429 / 5xx from the ingest endpoint. Retried with backoff."""


class IngestAuthError(IngestError):
    """Remote rejected the bearer token (401). Never retried."""

    code = "AUTH_FAILED"


class IngestValidationError(IngestError):
    """Remote rejected the payload (400). Never retried."""

    code = "VALIDATION_FAILED"
