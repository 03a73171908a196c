from __future__ import annotations


class LecapsError(Exception):
    """Base class for every error raised by the holdings core."""


class ValidationError(LecapsError):
    def __init__(self, field: str, message: str = "invalid value"):
        self.field = str(field)
        self.message = str(message)
        super().__init__(f"{self.field}: {self.message}")


class NotFoundError(LecapsError):
    def __init__(self, kind: str, identifier: str):
        self.kind = str(kind)
        self.identifier = str(identifier)
        super().__init__(f"{self.kind} not found: {self.identifier}")


class CollaboratorError(LecapsError):
    """A persistence or identity call failed. Raised with the original cause chained."""


class AuthError(LecapsError):
    pass
