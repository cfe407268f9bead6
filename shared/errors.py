"""
Shared error handling for the Logto Access Gateway.
"""

from typing import Dict, Any, Iterable, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GatewayException(Exception):
    """Base exception for gateway and CLI components."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(GatewayException):
    """Missing or invalid settings detected at startup."""

    status_code = 500

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class KeyFetchError(GatewayException):
    """The signing key set could not be fetched or parsed."""

    status_code = 503

    def __init__(self, message: str = "Failed to fetch signing keys", details: Optional[Dict[str, Any]] = None):
        super().__init__("KEY_FETCH_ERROR", message, details)


class AuthenticationError(GatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "AUTHENTICATION_ERROR"):
        super().__init__(code, message, details)


class MissingCredentialError(AuthenticationError):
    """No Authorization header was presented."""

    def __init__(self, message: str = "Authorization header required"):
        super().__init__(message, code="MISSING_CREDENTIAL")


class MalformedCredentialError(AuthenticationError):
    """The Authorization header is not a bearer credential."""

    def __init__(self, message: str = "Malformed Authorization header"):
        super().__init__(message, code="MALFORMED_CREDENTIAL")


class VerificationError(AuthenticationError):
    """A presented bearer token failed verification."""

    def __init__(self, message: str = "Invalid token", details: Optional[Dict[str, Any]] = None,
                 code: str = "INVALID_TOKEN"):
        super().__init__(message, details, code=code)


class MalformedTokenError(VerificationError):
    """The token is not a well-formed compact JWS."""

    def __init__(self, message: str = "Malformed token", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="MALFORMED_TOKEN")


class DisallowedAlgorithmError(VerificationError):
    """The token header declares an algorithm outside the allow-list."""

    def __init__(self, algorithm: Any):
        self.algorithm = algorithm
        super().__init__(
            f"Algorithm not allowed: {algorithm!r}",
            {"alg": algorithm},
            code="DISALLOWED_ALGORITHM",
        )


class UnknownKeyError(VerificationError):
    """No signing key with the token's key id exists, even after a refresh."""

    def __init__(self, kid: str, message: Optional[str] = None):
        self.kid = kid
        super().__init__(message or f"Signing key not found: {kid}", {"kid": kid}, code="UNKNOWN_KEY")


class InvalidSignatureError(VerificationError):
    """The token signature does not verify against the resolved key."""

    def __init__(self, message: str = "Signature verification failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="INVALID_SIGNATURE")


class ClaimValidationError(VerificationError):
    """A registered claim failed validation."""

    def __init__(self, claim: str, message: str):
        self.claim = claim
        super().__init__(message, {"claim": claim}, code="INVALID_CLAIM")


class AuthorizationError(GatewayException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "AUTHORIZATION_ERROR"):
        super().__init__(code, message, details)


class InsufficientScopeError(AuthorizationError):
    """None of the required scopes is present on the token."""

    def __init__(self, required: Iterable[str], present: Iterable[str]):
        self.required = tuple(sorted(required))
        self.present = tuple(present)
        super().__init__(
            f"Forbidden: insufficient scope. Requires '{' '.join(self.required)}'",
            {"required": list(self.required), "present": list(self.present)},
            code="INSUFFICIENT_SCOPE",
        )


class ExchangeError(GatewayException):
    """Token exchange with the identity provider failed."""

    status_code = 502

    def __init__(self, message: str = "Token exchange failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "EXCHANGE_ERROR"):
        super().__init__(code, message, details)


class ExchangeStatusError(ExchangeError):
    """The token endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.response_status = status_code
        self.body = body
        super().__init__(
            f"Token exchange failed with status code {status_code}",
            {"status_code": status_code, "body": body},
            code="EXCHANGE_STATUS_ERROR",
        )


class ExchangeResponseError(ExchangeError):
    """The token endpoint answered 2xx with an unparseable body."""

    def __init__(self, body: str, reason: str):
        self.body = body
        super().__init__(
            f"Unexpected token exchange response: {reason}",
            {"body": body, "reason": reason},
            code="EXCHANGE_RESPONSE_ERROR",
        )


class ExchangeTransportError(ExchangeError):
    """The token endpoint could not be reached."""

    def __init__(self, message: str):
        super().__init__(f"Error making HTTP request to token endpoint: {message}",
                         code="EXCHANGE_TRANSPORT_ERROR")
