from enum import Enum


class ErrorKind(Enum):
    validation = "validation"
    upstream = "upstream"
    not_found = "not_found"
    generation = "generation"


class AirchefError(Exception):
    kind = ErrorKind.upstream
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind.value}


class ValidationError(AirchefError):
    """The request is missing something or is malformed. The user can fix it."""

    kind = ErrorKind.validation
    status_code = 400


class UpstreamError(AirchefError):
    """Airtable or the language model failed us."""


class NotFound(AirchefError):
    kind = ErrorKind.not_found
    status_code = 404


class GenerationError(UpstreamError):
    kind = ErrorKind.generation

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
