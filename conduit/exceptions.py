"""
Application exception hierarchy.

Services raise these; the handlers registered in ``conduit.main`` turn
them into ``{"error": <detail>}`` responses with the class's status code.

    ConduitError (base)          -> 500
    ├── ValidationError          -> 422  {field: [messages]}
    ├── AuthenticationError      -> 401  bad credentials / bad or expired token
    ├── ForbiddenError           -> 403  explicit domain rejection
    ├── NotFoundError            -> 404
    ├── StoreError               -> 500  data-access failure
    └── InternalError            -> 500  unexpected library failure
"""
from typing import Any, Dict, List, Optional


class ConduitError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        detail:   Value rendered under the ``error`` key of the response.
        context:  Extra debug information that is logged but never returned.
    """

    status_code: int = 500

    def __init__(
        self,
        detail: Any = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.detail = detail
        self.context = context or {}
        super().__init__(str(detail))


class ValidationError(ConduitError):
    """Client input failed validation. ``detail`` maps fields to messages."""

    status_code = 422

    def __init__(
        self,
        errors: Dict[str, List[str]],
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail=errors, context=context)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class AuthenticationError(ConduitError):
    """
    Credentials or token rejected.

    The message is deliberately generic: expired and badly signed tokens
    look identical to the client, the difference only goes to the log.
    """

    status_code = 401

    def __init__(
        self,
        detail: Any = "authentication failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail=detail, context=context)


class ForbiddenError(ConduitError):
    status_code = 403

    def __init__(
        self,
        detail: Any = "forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail=detail, context=context)


class NotFoundError(ConduitError):
    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        key: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if key is not None:
            ctx["key"] = key
        super().__init__(detail=f"{resource} not found", context=ctx)
        self.resource = resource


class StoreError(ConduitError):
    """Wraps a SQLAlchemy failure; the message only reaches clients in DEBUG."""

    status_code = 500


class InternalError(ConduitError):
    status_code = 500

    def __init__(
        self,
        detail: Any = "internal server error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail=detail, context=context)
