"""Root of the federation error hierarchy.

Routing failures (an owner that cannot be resolved, a backend lacking the
capability an operation needs, a backend call that failed) are raised as
``NeoFederationError`` subclasses so API layers can map them to responses
without knowing which backend produced them.
"""

from typing import Any, Dict, Optional


class NeoFederationError(Exception):
    """Error raised while routing a directory operation.

    ``error_code`` defaults to the class name; ``details`` carries the
    descriptor, realm or capability involved so callers can log or return it.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


def get_http_status_code(exception: Exception) -> int:
    """Status an API layer should answer with for a routing error (500 when unmapped)."""
    from .http_mapping import get_http_status_code as _get_status_code
    return _get_status_code(exception)


def create_error_response(exception: NeoFederationError) -> Dict[str, Any]:
    """Error envelope returned to API callers.

    ``details`` is passed through as-is, so it must only hold identifiers
    (descriptor, realm, capability), never backend credentials.
    """
    return {
        "error": {
            "type": exception.__class__.__name__,
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
        }
    }
