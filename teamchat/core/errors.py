"""Domain error taxonomy.

Every error carries the HTTP status the API layer answers with and an
``error_code`` clients can branch on. ``GenerationError`` never reaches an
HTTP caller: AI turns run detached and resolve it into an apology message.
"""

from __future__ import annotations

from typing import ClassVar


class ChatError(Exception):
    status_code: ClassVar[int] = 500
    default_error_code: ClassVar[str] = "CHAT_ERROR"

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        self.message: str = message
        self.error_code: str = error_code or self.default_error_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "error_code": self.error_code}


class ValidationError(ChatError):
    status_code: ClassVar[int] = 400
    default_error_code: ClassVar[str] = "VALIDATION_ERROR"


class ConflictError(ValidationError):
    status_code: ClassVar[int] = 409
    default_error_code: ClassVar[str] = "CONFLICT"


class NotFoundError(ChatError):
    status_code: ClassVar[int] = 404
    default_error_code: ClassVar[str] = "NOT_FOUND"


class PersistenceError(ChatError):
    status_code: ClassVar[int] = 500
    default_error_code: ClassVar[str] = "PERSISTENCE_ERROR"


class GenerationError(ChatError):
    status_code: ClassVar[int] = 502
    default_error_code: ClassVar[str] = "GENERATION_ERROR"
