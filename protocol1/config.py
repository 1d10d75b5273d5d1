"""
Protocol-1 settings.

Settings come from an optional YAML file and are overridden by
environment variables, so deployments can flip the enforcement mode or
disable a rule set without shipping a new file.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from protocol1.core.errors import ConfigurationError
from protocol1.core.models import EnforcementMode, RuleFamily

CONFIG_PATH_ENV = "PROTOCOL1_CONFIG"
PRODUCTION = "production"

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}


class FailSafeMode(str, Enum):
    """
    What the gateway does when validation fails unexpectedly.

    - environment: allow in production, surface the error elsewhere
    - allow: always allow (fail open)
    - block: always surface the error (fail closed)
    """

    ENVIRONMENT = "environment"
    ALLOW = "allow"
    BLOCK = "block"


class MonitoringSettings(BaseModel):
    enabled: bool = True
    track_action_counter: bool = True


class AlertingSettings(BaseModel):
    """Alert triggers; the anomaly rule fires above threshold within the window."""

    enabled: bool = True
    alert_on_critical: bool = True
    alert_on_anomaly: bool = True
    anomaly_threshold: int = Field(10, ge=1)
    anomaly_window_minutes: int = Field(5, ge=1)


class ExceptionSettings(BaseModel):
    fail_safe_mode: FailSafeMode = FailSafeMode.ENVIRONMENT


class PerformanceSettings(BaseModel):
    max_validation_duration_ms: float = Field(500.0, gt=0)


def _all_rule_sets() -> dict[RuleFamily, bool]:
    return {family: True for family in RuleFamily}


class Protocol1Settings(BaseModel):
    """
    Complete Protocol-1 configuration.

    Attributes:
        enabled: Master switch; when False the gateway skips validation
        enforcement_mode: strict, lenient or monitor
        environment: Deployment environment name (fail-open applies in production)
        enabled_rule_sets: Per-family switches for gradual rollout
        monitoring: Violation logging and action counting
        alerting: Critical and anomaly alert triggers
        exceptions: Fail-safe policy for unexpected errors
        performance: Validation latency budget
    """

    enabled: bool = True
    enforcement_mode: EnforcementMode = EnforcementMode.STRICT
    environment: str = PRODUCTION
    enabled_rule_sets: dict[RuleFamily, bool] = Field(default_factory=_all_rule_sets)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    alerting: AlertingSettings = Field(default_factory=AlertingSettings)
    exceptions: ExceptionSettings = Field(default_factory=ExceptionSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)

    class Config:
        json_schema_extra = {
            "example": {
                "enabled": True,
                "enforcement_mode": "strict",
                "environment": "production",
                "enabled_rule_sets": {"buy_eligibility": True, "cross_phase": False},
                "alerting": {"anomaly_threshold": 10, "anomaly_window_minutes": 5},
            }
        }

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == PRODUCTION

    def enabled_families(self) -> list[RuleFamily]:
        """Rule families switched on; families missing from the map default to on."""
        return [family for family in RuleFamily if self.enabled_rule_sets.get(family, True)]

    def should_fail_open(self) -> bool:
        """Whether an unexpected validation error lets the request through."""
        mode = self.exceptions.fail_safe_mode
        if mode == FailSafeMode.ALLOW:
            return True
        if mode == FailSafeMode.BLOCK:
            return False
        return self.is_production


# env var -> (section, key); section None means a top-level key
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "PROTOCOL1_ENABLED": (None, "enabled"),
    "PROTOCOL1_ENFORCEMENT_MODE": (None, "enforcement_mode"),
    "APP_ENV": (None, "environment"),
    "PROTOCOL1_MONITORING_ENABLED": ("monitoring", "enabled"),
    "PROTOCOL1_TRACK_ACTIONS": ("monitoring", "track_action_counter"),
    "PROTOCOL1_ALERTING_ENABLED": ("alerting", "enabled"),
    "PROTOCOL1_ALERT_CRITICAL": ("alerting", "alert_on_critical"),
    "PROTOCOL1_ALERT_ANOMALY": ("alerting", "alert_on_anomaly"),
    "PROTOCOL1_ANOMALY_THRESHOLD": ("alerting", "anomaly_threshold"),
    "PROTOCOL1_ANOMALY_WINDOW": ("alerting", "anomaly_window_minutes"),
    "PROTOCOL1_FAIL_SAFE": ("exceptions", "fail_safe_mode"),
    "PROTOCOL1_MAX_VALIDATION_MS": ("performance", "max_validation_duration_ms"),
}

RULE_SET_ENV_PREFIX = "PROTOCOL1_RULE_"


class SettingsLoader:
    """
    Loads Protocol1Settings from YAML plus environment overrides.

    Expected YAML format:
    ```yaml
    protocol1:
      enabled: true
      enforcement_mode: strict
      enabled_rule_sets:
        platform_supremacy: true
        cross_phase: false
      alerting:
        anomaly_threshold: 10
        anomaly_window_minutes: 5
    ```
    """

    def __init__(self, config_path: str | Path | None = None, environ: Mapping[str, str] | None = None):
        """
        Initialize the settings loader.

        Args:
            config_path: YAML file (defaults to env var PROTOCOL1_CONFIG; optional)
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ConfigurationError: If an explicit config file does not exist
        """
        self.environ = os.environ if environ is None else environ
        path = config_path or self.environ.get(CONFIG_PATH_ENV)
        self.config_path = Path(path) if path else None

        if self.config_path is not None and not self.config_path.exists():
            raise ConfigurationError(f"Protocol-1 configuration file not found: {self.config_path}")

    def load(self) -> Protocol1Settings:
        """
        Build the settings.

        Returns:
            Validated Protocol1Settings

        Raises:
            ConfigurationError: If the YAML or any value is invalid
        """
        raw = self._read_file()
        self._apply_env(raw)

        try:
            return Protocol1Settings.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid Protocol-1 configuration: {e}") from e

    def _read_file(self) -> dict[str, Any]:
        if self.config_path is None:
            return {}

        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "protocol1" not in config:
            raise ConfigurationError("Configuration file must contain 'protocol1' section")

        section = config["protocol1"] or {}
        if not isinstance(section, dict):
            raise ConfigurationError("'protocol1' section must be a mapping")
        return section

    def _apply_env(self, raw: dict[str, Any]) -> None:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value is None or value == "":
                continue
            target = raw if section is None else raw.setdefault(section, {})
            target[key] = _parse_bool(value) if _looks_boolean(key) else value

        for family in RuleFamily:
            value = self.environ.get(f"{RULE_SET_ENV_PREFIX}{family.value.upper()}")
            if value:
                raw.setdefault("enabled_rule_sets", {})[family.value] = _parse_bool(value)


def _looks_boolean(key: str) -> bool:
    return key in ("enabled", "track_action_counter", "alert_on_critical", "alert_on_anomaly")


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUTHY:
        return True
    if normalized in FALSY:
        return False
    raise ConfigurationError(f"Expected a boolean value, got '{value}'")


def load_settings(config_path: str | Path | None = None) -> Protocol1Settings:
    """Convenience wrapper: load settings from the default locations."""
    return SettingsLoader(config_path).load()
