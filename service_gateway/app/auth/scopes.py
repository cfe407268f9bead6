"""
Scope-based authorization.

A request is allowed when the token carries *any one* of the required
scopes. There is no "all of" mode.
"""

from typing import FrozenSet, Iterable

from shared.errors import InsufficientScopeError
from shared.logging import get_logger
from .models import VerifiedClaims

logger = get_logger("gateway.auth.scopes")


def authorize(claims: VerifiedClaims, required_scopes: Iterable[str]) -> FrozenSet[str]:
    """Return the required scopes the token holds.

    Raises:
        InsufficientScopeError: the token holds none of ``required_scopes``.
    """
    required = frozenset(required_scopes)
    granted = required.intersection(claims.scope)
    if not granted:
        logger.warning(
            "Access denied: insufficient scope",
            subject=claims.subject,
            required=sorted(required),
            present=list(claims.scope),
        )
        raise InsufficientScopeError(required, claims.scope)

    logger.info("Scope check passed", subject=claims.subject, granted=sorted(granted))
    return granted
