"""
Bearer token verification against the identity provider's key set.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Optional

from jose import jwk, jws
from jose.exceptions import JOSEError

from shared.errors import (
    ClaimValidationError,
    DisallowedAlgorithmError,
    InvalidSignatureError,
    KeyFetchError,
    MalformedTokenError,
    UnknownKeyError,
    VerificationError,
)
from shared.logging import get_logger
from .jwks import KeyResolver, SigningKey
from .models import AuthConfig, VerifiedClaims

REGISTERED_CLAIMS = frozenset({"sub", "iss", "aud", "exp", "nbf", "scope"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenVerifier:
    """Validates signature, algorithm and registered claims of a JWT."""

    def __init__(
        self,
        key_resolver: KeyResolver,
        config: AuthConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.key_resolver = key_resolver
        self.config = config
        self.clock = clock
        self.logger = get_logger("gateway.auth.verifier")

    async def verify(self, token: str) -> VerifiedClaims:
        """Verify ``token`` and return its claims.

        Raises:
            VerificationError: one of its subclasses, naming the reason.
        """
        try:
            claims = await self._verify(token)
        except VerificationError as exc:
            self.logger.warning(
                "Token verification failed",
                code=exc.code,
                reason=exc.message,
                **exc.details,
            )
            raise

        self.logger.info("Token validated successfully", subject=claims.subject)
        return claims

    async def _verify(self, token: str) -> VerifiedClaims:
        header = self._read_header(token)

        algorithm = header.get("alg")
        if not isinstance(algorithm, str) or algorithm not in self.config.allowed_algorithms:
            raise DisallowedAlgorithmError(algorithm)

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedTokenError("JWT header missing key id (kid)")

        try:
            signing_key = await self.key_resolver.get_key(kid)
        except KeyFetchError as exc:
            raise UnknownKeyError(kid, f"Signing key {kid} unavailable: {exc.message}") from exc

        payload = self._verify_signature(token, signing_key, algorithm)
        return self._validate_claims(payload)

    def _read_header(self, token: str) -> Dict[str, Any]:
        try:
            return jws.get_unverified_header(token)
        except JOSEError as exc:
            raise MalformedTokenError(f"Unable to parse token header: {exc}") from exc

    def _verify_signature(self, token: str, signing_key: SigningKey, algorithm: str) -> Dict[str, Any]:
        if signing_key.algorithm and signing_key.algorithm != algorithm:
            raise InvalidSignatureError(
                "Token algorithm does not match signing key",
                details={"kid": signing_key.kid, "alg": algorithm},
            )

        try:
            key = jwk.construct(dict(signing_key.jwk), algorithm)
            payload = jws.verify(token, key, algorithms=[algorithm])
        except JOSEError as exc:
            raise InvalidSignatureError(details={"kid": signing_key.kid, "error": str(exc)}) from exc

        try:
            claims = json.loads(payload)
        except ValueError as exc:
            raise MalformedTokenError("Token payload is not valid JSON") from exc
        if not isinstance(claims, dict):
            raise MalformedTokenError("Token payload is not a JSON object")
        return claims

    def _validate_claims(self, payload: Dict[str, Any]) -> VerifiedClaims:
        now = self.clock().timestamp()
        leeway = self.config.clock_skew_leeway.total_seconds()

        issuer = payload.get("iss")
        if issuer != self.config.issuer_url:
            raise ClaimValidationError("iss", f"Invalid issuer: {issuer!r}")

        audience = _audience_set(payload.get("aud"))
        if self.config.audience not in audience:
            raise ClaimValidationError("aud", f"Audience does not include {self.config.audience!r}")

        expires_at = _numeric_date(payload, "exp", required=True)
        if now > expires_at.timestamp() + leeway:
            raise ClaimValidationError("exp", "Token has expired")

        not_before = _numeric_date(payload, "nbf", required=False)
        if not_before is not None and now < not_before.timestamp() - leeway:
            raise ClaimValidationError("nbf", "Token is not yet valid")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise ClaimValidationError("sub", "Token missing subject claim")

        scope = payload.get("scope") or ""
        if not isinstance(scope, str):
            raise ClaimValidationError("scope", "Scope claim must be a space-delimited string")

        return VerifiedClaims(
            subject=subject,
            issuer=issuer,
            audience=audience,
            expires_at=expires_at,
            not_before=not_before,
            scope=tuple(scope.split()),
            raw=MappingProxyType({k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS}),
        )


def _audience_set(value: Any) -> FrozenSet[str]:
    if isinstance(value, str):
        return frozenset([value])
    if isinstance(value, list):
        return frozenset(item for item in value if isinstance(item, str))
    return frozenset()


def _numeric_date(payload: Dict[str, Any], claim: str, *, required: bool) -> Optional[datetime]:
    value = payload.get(claim)
    if value is None:
        if required:
            raise ClaimValidationError(claim, f"Token missing '{claim}' claim")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ClaimValidationError(claim, f"'{claim}' claim must be a NumericDate")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ClaimValidationError(claim, f"'{claim}' claim is out of range") from exc
