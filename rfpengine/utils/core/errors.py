from datetime import datetime, UTC


class RfpEngineError(Exception):
    """Base class for errors raised by engine tools."""

    pass


class ConfigurationError(RfpEngineError):
    """Required setting or secret is missing."""

    pass


class ExtractionError(RfpEngineError):
    """LLM output could not be turned into a structured record."""

    pass


class RequestError(RfpEngineError):
    """Caller-side problem that maps onto an HTTP status."""

    status_code = 400

    def __init__(self, message: str, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> dict:
        return {"error": self.message, **self.extra}


class NotFoundError(RequestError):
    status_code = 404


class DuplicateVendorError(RequestError):
    pass


def _make_error_payload(
    stage: str, err: Exception | str, extra: dict | None = None
) -> dict:
    msg = str(err)
    base = {
        "status": "error",
        "error": msg,
        "stage": stage,
        "timestamp": datetime.now(UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z"),
    }
    if extra:
        base.update(extra)
    return base
