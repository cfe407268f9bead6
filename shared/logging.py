"""
Shared logging configuration for the Logto Access Gateway.

Services log JSON lines to stdout; the CLI logs human-readable lines to
stderr so stdout stays reserved for command output. Bearer tokens, PATs
and client secrets are masked before rendering.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Callable, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
subject_var: ContextVar[Optional[str]] = ContextVar('subject', default=None)

CLI_SERVICE_NAME = "cli"
REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset({
    "authorization",
    "token",
    "access_token",
    "subject_token",
    "pat",
    "client_secret",
})

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service or the CLI."""
    is_cli = service_name == CLI_SERVICE_NAME
    renderer = structlog.dev.ConsoleRenderer(colors=False) if is_cli else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            service_context(service_name),
            add_correlation_context,
            redact_credentials,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr if is_cli else sys.stdout,
        level=resolve_log_level(log_level),
    )


def resolve_log_level(log_level: str) -> int:
    """Map a level name to its numeric value, falling back to INFO for unknown names."""
    if log_level.lower() not in LOG_LEVELS:
        return logging.INFO
    return getattr(logging, log_level.upper())


def service_context(service_name: str) -> Processor:
    """Processor stamping every event with the configured service name."""

    def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service_context


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request id and authenticated subject to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    subject = subject_var.get()
    if subject:
        event_dict.setdefault("subject", subject)

    return event_dict


def redact_credentials(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask credential values, including ones nested one level deep."""
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_KEYS and value:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if isinstance(k, str) and k.lower() in SENSITIVE_KEYS and v else v
                for k, v in value.items()
            }
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_subject_context(subject: Optional[str] = None):
    """Set the authenticated subject in logging."""
    if subject:
        subject_var.set(subject)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    subject_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
