"""
Access Gateway service package.

The gateway verifies Logto-issued bearer tokens and enforces scopes before
handing requests to route handlers.

Structure:
- app.main: FastAPI app, routes, and startup/shutdown wiring.
- app.auth: Key resolution, token verification, scope checks and the
  per-request pipeline composing them.
- app.domain: HTTP boundary helpers (auth middleware / dependencies).

Design notes:
- Module import must not perform network calls. The initial JWKS fetch
  happens in the startup hook and a failure there aborts startup.
- All mutable auth state lives in the KeyResolver owned by GatewayService.
"""
