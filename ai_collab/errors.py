"""Exceptions raised inside the orchestration core.

Only the strategy and synthesis internals raise these. Public entry points
catch them and return a result with success=False.
"""


class CollabError(Exception):
    """Base exception for orchestration errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ValidationError(CollabError):
    """Bad configuration or parameters, detected before any backend call."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or [message]
        super().__init__(message)


class AggregateFailure(CollabError):
    """Too many backends failed for the operation to produce a result."""

    def __init__(self, message: str, failed_providers: list[str] | None = None) -> None:
        self.failed_providers = failed_providers or []
        super().__init__(message)
