"""
Shared utilities for the Logto Access Gateway.

This package aggregates common building blocks consumed by the gateway
service and the PAT command line tool:

- config: Gateway configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service scaffolding
- test_helpers: Signing keys and token factories for tests

Do not import from service_gateway or pat_cli into shared/.
"""
