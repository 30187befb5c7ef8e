"""Operator configuration for twinop."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Iterator
from typing import Any

from twinop._constants import (
    DEFAULT_CA_PATH,
    DEFAULT_INTERVAL_SECONDS,
    GROUP_ANNOTATION_KEY,
    GROUP_ANNOTATION_VALUE,
)
from twinop._redact import redact_for_log
from twinop.exceptions import TwinOpConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_label_selector(value: str) -> dict[str, str]:
    """Parse ``"k=v,k2=v2"`` into a selector dict."""
    selector: dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, label = item.partition("=")
        if not sep or not key.strip():
            raise TwinOpConfigError(f"invalid label selector entry {item!r}, expected key=value")
        selector[key.strip()] = label.strip()
    return selector


def _parse_annotation(value: str) -> tuple[str, str]:
    key, sep, annotation = value.partition("=")
    if not sep or not key.strip():
        raise TwinOpConfigError(f"invalid group annotation {value!r}, expected key=value")
    return key.strip(), annotation.strip()


@dataclasses.dataclass(frozen=True)
class ReconnectPolicy:
    """Backoff used when the event bus connection drops.

    Parameters
    ----------
    initial_delay : float
        Seconds before the first reconnect attempt.
    max_delay : float
        Upper bound for the delay between attempts.
    multiplier : float
        Growth factor between consecutive delays (``1.0`` = fixed backoff).
    max_attempts : int or None
        Consecutive failed attempts after which the connection is reported
        as lost. ``None`` retries forever.
    """

    initial_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0
    max_attempts: int | None = 10

    def __post_init__(self) -> None:
        if self.initial_delay <= 0 or self.max_delay < self.initial_delay:
            raise TwinOpConfigError("reconnect delays must satisfy 0 < initial_delay <= max_delay")
        if self.multiplier < 1.0:
            raise TwinOpConfigError("reconnect multiplier must be >= 1.0")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise TwinOpConfigError("reconnect max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        """Delay before reconnect *attempt* (1-based)."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        return min(self.max_delay, self.initial_delay * self.multiplier ** (attempt - 1))

    def delays(self) -> Iterator[float]:
        """Delays for every attempt the policy allows."""
        attempt = 1
        while self.max_attempts is None or attempt <= self.max_attempts:
            yield self.delay(attempt)
            attempt += 1


@dataclasses.dataclass(frozen=True)
class OperatorConfig:
    """Operator configuration.

    Parameters
    ----------
    application : str
        Registry application whose devices are reconciled.
    api_url : str
        Base URL of the registry API.
    user : str
        User for authenticating against the APIs and the event bus.
    token : str
        Access token for *user*.
    mqtt_uri : str
        Event bus URI (``tcp://host:port`` or ``ssl://host:port``).
    template_path : str
        Path of the thing template (YAML).
    twin_api_url : str or None
        Base URL of the twin API. Defaults to *api_url*.
    mqtt_group_id : str or None
        Shared subscription group, for running several instances.
    mqtt_client_id : str
        MQTT client id.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    ca_path : str
        CA bundle used to verify the broker certificate.
    disable_tls : bool
        Connect to the broker without TLS.
    insecure_tls : bool
        Skip broker certificate verification.
    interval : float
        Seconds between periodic full scans.
    label_selector : dict[str, str]
        Labels a device must carry to get a twin; others are cleaned up.
    group_annotation : tuple[str, str]
        Annotation stamped on the device thing.
    max_attempts : int or None
        Ceiling on immediate retries per device. ``None`` retries until done.
    stop_on_malformed_event : bool
        Stop consuming events when a payload cannot be decoded.
    reconnect : ReconnectPolicy
        Event bus reconnection policy.
    """

    application: str
    api_url: str
    user: str
    token: str
    mqtt_uri: str
    template_path: str
    twin_api_url: str | None = None
    mqtt_group_id: str | None = None
    mqtt_client_id: str = "twin-operator"
    mqtt_keepalive: int = 30
    ca_path: str = DEFAULT_CA_PATH
    disable_tls: bool = False
    insecure_tls: bool = False
    interval: float = DEFAULT_INTERVAL_SECONDS
    label_selector: dict[str, str] = dataclasses.field(default_factory=dict)
    group_annotation: tuple[str, str] = (GROUP_ANNOTATION_KEY, GROUP_ANNOTATION_VALUE)
    max_attempts: int | None = None
    stop_on_malformed_event: bool = True
    reconnect: ReconnectPolicy = dataclasses.field(default_factory=ReconnectPolicy)

    @property
    def resolved_twin_api_url(self) -> str:
        return self.twin_api_url or self.api_url

    @property
    def topic(self) -> str:
        """Event bus subscription topic (shared when a group id is set)."""
        if self.mqtt_group_id:
            return f"$shared/{self.mqtt_group_id}/app/{self.application}"
        return f"app/{self.application}"

    def validate(self) -> None:
        """Raise :class:`TwinOpConfigError` when required settings are missing."""
        missing = [
            name
            for name in ("application", "api_url", "user", "token", "mqtt_uri", "template_path")
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise TwinOpConfigError(f"missing required configuration: {', '.join(missing)}")
        if self.interval <= 0:
            raise TwinOpConfigError("interval must be positive")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise TwinOpConfigError("max_attempts must be at least 1")

    def redacted(self) -> dict[str, Any]:
        """Configuration as a dict safe to log."""
        return redact_for_log(dataclasses.asdict(self))

    @classmethod
    def from_env(cls, **overrides: Any) -> OperatorConfig:
        """Create configuration from environment variables.

        Reads ``TWINOP_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        OperatorConfig
            Populated (not yet validated) configuration.
        """
        env = os.environ

        reconnect_kwargs: dict[str, Any] = {}
        _ENV_RECONNECT_MAP = {
            "TWINOP_RECONNECT_INITIAL_DELAY": ("initial_delay", float),
            "TWINOP_RECONNECT_MAX_DELAY": ("max_delay", float),
            "TWINOP_RECONNECT_MULTIPLIER": ("multiplier", float),
        }
        for env_key, (field_name, convert) in _ENV_RECONNECT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                reconnect_kwargs[field_name] = convert(val)
        attempts_env = env.get("TWINOP_RECONNECT_MAX_ATTEMPTS")
        if attempts_env is not None:
            reconnect_kwargs["max_attempts"] = int(attempts_env) if attempts_env.strip() else None

        # Allow overriding reconnect fields via a nested dict
        reconnect_overrides = overrides.pop("reconnect", None)
        if isinstance(reconnect_overrides, dict):
            reconnect_kwargs.update(reconnect_overrides)
        elif isinstance(reconnect_overrides, ReconnectPolicy):
            reconnect_kwargs = dataclasses.asdict(reconnect_overrides)

        reconnect = ReconnectPolicy(**reconnect_kwargs) if reconnect_kwargs else ReconnectPolicy()

        _ENV_CONFIG_MAP = {
            "TWINOP_APPLICATION": "application",
            "TWINOP_API_URL": "api_url",
            "TWINOP_TWIN_API_URL": "twin_api_url",
            "TWINOP_USER": "user",
            "TWINOP_TOKEN": "token",
            "TWINOP_MQTT_URI": "mqtt_uri",
            "TWINOP_MQTT_GROUP_ID": "mqtt_group_id",
            "TWINOP_MQTT_CLIENT_ID": "mqtt_client_id",
            "TWINOP_CA_PATH": "ca_path",
            "TWINOP_TEMPLATE": "template_path",
        }
        config_kwargs: dict[str, Any] = {
            "reconnect": reconnect,
            "application": "",
            "api_url": "",
            "user": "",
            "token": "",
            "mqtt_uri": "",
            "template_path": "",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        keepalive_env = env.get("TWINOP_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = int(keepalive_env)

        interval_env = env.get("TWINOP_INTERVAL")
        if interval_env is not None and "interval" not in overrides:
            config_kwargs["interval"] = float(interval_env)

        attempts = env.get("TWINOP_MAX_ATTEMPTS")
        if attempts is not None and attempts.strip() and "max_attempts" not in overrides:
            config_kwargs["max_attempts"] = int(attempts)

        selector_env = env.get("TWINOP_LABEL_SELECTOR")
        if selector_env is not None and "label_selector" not in overrides:
            config_kwargs["label_selector"] = parse_label_selector(selector_env)

        annotation_env = env.get("TWINOP_GROUP_ANNOTATION")
        if annotation_env is not None and "group_annotation" not in overrides:
            config_kwargs["group_annotation"] = _parse_annotation(annotation_env)

        if "disable_tls" not in overrides:
            config_kwargs["disable_tls"] = _env_bool(env.get("TWINOP_DISABLE_TLS"), False)
        if "insecure_tls" not in overrides:
            config_kwargs["insecure_tls"] = _env_bool(env.get("TWINOP_INSECURE_TLS"), False)
        if "stop_on_malformed_event" not in overrides:
            config_kwargs["stop_on_malformed_event"] = _env_bool(
                env.get("TWINOP_STOP_ON_MALFORMED_EVENT"),
                True,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
