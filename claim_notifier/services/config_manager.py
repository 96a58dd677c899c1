import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Mapping, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from claim_notifier.models.config import NotifierConfig
from claim_notifier.utils.exceptions import ConfigError

logger = structlog.get_logger()

# Environment variable -> NotifierConfig field
REQUIRED_ENV = {
    "API_URL": "upstream_url",
    "API_KEY": "upstream_api_key",
    "EMAILS_DYNAMODB_TABLE_NAME": "history_table",
    "SQS_QUEUE_URL": "queue_url",
}

OPTIONAL_ENV = {
    "AWS_REGION": "aws_region",
    "NOTIFIER_TIMEOUT_SECONDS": "operation_timeout_seconds",
    "NOTIFIER_MAX_CONCURRENCY": "max_concurrent_claims",
}

POLICY_ENV = {
    "NOTIFIER_MAX_NOTIFICATIONS": "max_notifications",
    "NOTIFIER_COOLDOWN_HOURS": "cooldown_hours",
}

CONFIG_FILE_ENV = "NOTIFIER_CONFIG_FILE"


def _has_placeholder(value: Any) -> bool:
    return isinstance(value, str) and "${" in value


class ConfigManager:
    """Builds a NotifierConfig from the environment.

    Sources, lowest precedence first:
    1. Optional YAML file (``NOTIFIER_CONFIG_FILE`` or ``config_path``), with
       ``${VAR}`` substitution from the environment
    2. Environment variables (a ``.env`` file is loaded first if present)
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        load_env_file: bool = True,
    ):
        self.config_path = Path(config_path) if config_path else None
        self.load_env_file = load_env_file
        self._environ = environ
        self._config: Optional[NotifierConfig] = None

    def load_config(self) -> NotifierConfig:
        """Load and validate configuration.

        Raises:
            ConfigError: A required value is missing, a value is invalid, or
                the YAML file cannot be read.
        """
        if self._config:
            return self._config

        # 1. Load .env (never overrides variables already set)
        if self.load_env_file and self._environ is None:
            load_dotenv()

        environ: Mapping[str, str] = (
            self._environ if self._environ is not None else os.environ
        )

        # 2. Optional YAML base layer
        data = self._load_file(environ)

        # 3. Environment overrides
        missing = []
        for var, field in REQUIRED_ENV.items():
            value = environ.get(var, "").strip()
            if value:
                data[field] = value
            elif not data.get(field) or _has_placeholder(data[field]):
                # ${VAR} left in place by safe_substitute counts as unset
                missing.append(var)

        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(sorted(missing))}"
            )

        for var, field in OPTIONAL_ENV.items():
            value = environ.get(var, "").strip()
            if value:
                data[field] = value

        raw_policy = data.get("policy") or {}
        if not isinstance(raw_policy, dict):
            raise ConfigError("policy must be a mapping")
        policy: Dict[str, Any] = dict(raw_policy)
        for var, field in POLICY_ENV.items():
            value = environ.get(var, "").strip()
            if value:
                policy[field] = value
        if policy:
            data["policy"] = policy

        # 4. Validate with Pydantic
        try:
            self._config = NotifierConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        logger.info(
            "config_loaded",
            history_table=self._config.history_table,
            max_notifications=self._config.policy.max_notifications,
            cooldown_hours=self._config.policy.cooldown_hours,
            max_concurrent_claims=self._config.max_concurrent_claims,
        )
        return self._config

    def _load_file(self, environ: Mapping[str, str]) -> Dict[str, Any]:
        path = self.config_path
        if path is None and environ.get(CONFIG_FILE_ENV):
            path = Path(environ[CONFIG_FILE_ENV])
        if path is None:
            return {}

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            raw_content = path.read_text()
        except OSError as e:
            raise ConfigError(f"Failed to read config file: {e}") from e

        try:
            substituted = Template(raw_content).safe_substitute(environ)
            loaded = yaml.safe_load(substituted)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config: {e}") from e

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigError("Config file must contain a mapping at top level")
        return loaded
