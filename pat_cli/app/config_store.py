"""
YAML-backed settings for the PAT command line tool.

The file lives at ``$HOME/.logto-playground.yaml`` unless ``--config``
points elsewhere::

    pat: "your_logto_personal_access_token"
    logto:
      tenant_url: "https://<tenant-id>.logto.app"
      client_id: "your_logto_client_id"
      client_secret: "optional"
      scope: "profile"
      resource: "urn:your-api-identifier"
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ValidationError

from shared.errors import ConfigurationError
from .adapters.token_exchange_client import ClientAuthMethod, ExchangeRequest

DEFAULT_CONFIG_FILE_NAME = ".logto-playground"
DEFAULT_CONFIG_TYPE = "yaml"
PAT_ENV_VAR = "PAT"


class LogtoSettings(BaseModel):
    """The ``logto:`` section."""

    tenant_url: str = ""
    client_id: str = ""
    client_secret: Optional[str] = None
    scope: Optional[str] = None
    resource: Optional[str] = None
    client_auth_method: Optional[ClientAuthMethod] = None


class CLIConfig(BaseModel):
    """Whole CLI configuration file."""

    pat: str = ""
    logto: LogtoSettings = LogtoSettings()

    def missing_exchange_settings(self) -> List[str]:
        missing = []
        if not self.pat:
            missing.append("pat")
        if not self.logto.tenant_url:
            missing.append("logto.tenant_url")
        if not self.logto.client_id:
            missing.append("logto.client_id")
        return missing

    def to_exchange_request(self) -> ExchangeRequest:
        """Build the exchange request, failing on missing settings."""
        missing = self.missing_exchange_settings()
        if missing:
            raise ConfigurationError(
                f"Missing configuration values: {', '.join(missing)}",
                details={"missing": missing},
            )
        return ExchangeRequest(
            tenant_url=self.logto.tenant_url,
            client_id=self.logto.client_id,
            subject_token=self.pat,
            scope=self.logto.scope,
            resource=self.logto.resource,
            client_secret=self.logto.client_secret,
            client_auth_method=self.logto.client_auth_method,
        )


def default_config_path() -> Path:
    """``$HOME/.logto-playground.yaml``."""
    return Path.home() / f"{DEFAULT_CONFIG_FILE_NAME}.{DEFAULT_CONFIG_TYPE}"


def _read_document(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading config file ({path}): {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Config file ({path}) must contain a mapping")
    return document


def load_cli_config(path: Optional[Path] = None) -> CLIConfig:
    """Load the CLI config; a missing file yields defaults.

    ``PAT`` in the environment overrides the stored token.
    """
    path = path or default_config_path()
    document = _read_document(path)
    env_pat = os.getenv(PAT_ENV_VAR)
    if env_pat:
        document["pat"] = env_pat
    try:
        return CLIConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config file ({path}): {exc}") from exc


def save_pat(pat: str, path: Optional[Path] = None) -> Path:
    """Store ``pat`` under the ``pat`` key, keeping every other key."""
    if not pat:
        raise ConfigurationError("PAT value cannot be empty.")

    path = path or default_config_path()
    document = _read_document(path)
    document["pat"] = pat

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, default_flow_style=False, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Error writing configuration to {path}: {exc}") from exc
    return path
