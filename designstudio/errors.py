# designstudio/errors.py
from typing import Any, Dict, List, Optional

class StudioError(Exception):
    """Base class for design studio errors"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

class ValidationError(StudioError):
    """Missing or malformed request input"""
    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)

class NotFoundError(StudioError):
    pass

class AuthenticationError(StudioError):
    pass

class AuthorizationError(AuthenticationError):
    """Caller is known but lacks the required role"""
    pass

class SignatureMismatchError(StudioError):
    def __init__(self, message: str = "Payment verification failed"):
        super().__init__(message)

class ConfigurationError(StudioError):
    """Required pricing or gateway setting is absent"""
    pass

class ExternalServiceError(StudioError):
    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")

class DuplicateKeyError(StudioError):
    """Unique constraint rejected a write"""
    def __init__(self, constraint: str):
        self.constraint = constraint
        super().__init__(f"Duplicate key violates unique constraint: {constraint}")

ERROR_STATUS_CODES = {
    ValidationError: 400,
    SignatureMismatchError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    DuplicateKeyError: 409,
    ConfigurationError: 500,
    ExternalServiceError: 502,
}

def status_code_for(exc: StudioError) -> int:
    """HTTP status for an error; the most specific class wins"""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500
