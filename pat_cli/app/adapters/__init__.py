"""
HTTP adapters used by the PAT CLI.
"""

from .token_exchange_client import (
    ClientAuthMethod,
    ExchangeRequest,
    ExchangeResponse,
    PAT_TOKEN_TYPE,
    TOKEN_EXCHANGE_GRANT_TYPE,
    TokenExchangeClient,
)

__all__ = [
    "ClientAuthMethod",
    "ExchangeRequest",
    "ExchangeResponse",
    "PAT_TOKEN_TYPE",
    "TOKEN_EXCHANGE_GRANT_TYPE",
    "TokenExchangeClient",
]
