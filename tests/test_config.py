from __future__ import annotations

import pytest

from twinop.config import OperatorConfig, ReconnectPolicy, parse_label_selector
from twinop.exceptions import TwinOpConfigError

_REQUIRED = {
    "TWINOP_APPLICATION": "eclipsecon",
    "TWINOP_API_URL": "https://api.example.com",
    "TWINOP_USER": "operator",
    "TWINOP_TOKEN": "s3cret",
    "TWINOP_MQTT_URI": "ssl://mqtt.example.com:8883",
    "TWINOP_TEMPLATE": "/etc/twin/template.yaml",
}


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key, value in _REQUIRED.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_from_env_defaults(env: pytest.MonkeyPatch) -> None:
    config = OperatorConfig.from_env()
    config.validate()

    assert config.application == "eclipsecon"
    assert config.resolved_twin_api_url == "https://api.example.com"
    assert config.interval == 60.0
    assert config.max_attempts is None
    assert config.stop_on_malformed_event is True
    assert config.group_annotation == ("io.drogue/group", "btmesh/eclipsecon2022")
    assert config.topic == "app/eclipsecon"
    assert config.reconnect == ReconnectPolicy()


def test_from_env_optional_settings(env: pytest.MonkeyPatch) -> None:
    env.setenv("TWINOP_TWIN_API_URL", "https://twin.example.com")
    env.setenv("TWINOP_MQTT_GROUP_ID", "twin")
    env.setenv("TWINOP_INTERVAL", "15")
    env.setenv("TWINOP_MAX_ATTEMPTS", "5")
    env.setenv("TWINOP_LABEL_SELECTOR", "role=sensor, site=a")
    env.setenv("TWINOP_GROUP_ANNOTATION", "example.com/group=lab")
    env.setenv("TWINOP_INSECURE_TLS", "yes")
    env.setenv("TWINOP_STOP_ON_MALFORMED_EVENT", "false")
    env.setenv("TWINOP_RECONNECT_MAX_ATTEMPTS", "")
    env.setenv("TWINOP_RECONNECT_MAX_DELAY", "30")

    config = OperatorConfig.from_env()

    assert config.resolved_twin_api_url == "https://twin.example.com"
    assert config.topic == "$shared/twin/app/eclipsecon"
    assert config.interval == 15.0
    assert config.max_attempts == 5
    assert config.label_selector == {"role": "sensor", "site": "a"}
    assert config.group_annotation == ("example.com/group", "lab")
    assert config.insecure_tls is True
    assert config.stop_on_malformed_event is False
    assert config.reconnect.max_attempts is None
    assert config.reconnect.max_delay == 30.0


def test_overrides_win_over_env(env: pytest.MonkeyPatch) -> None:
    env.setenv("TWINOP_INTERVAL", "15")

    config = OperatorConfig.from_env(interval=5.0, application="other", reconnect={"max_attempts": 2})

    assert config.interval == 5.0
    assert config.application == "other"
    assert config.reconnect.max_attempts == 2


def test_validate_reports_missing_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _REQUIRED:
        monkeypatch.delenv(key, raising=False)

    with pytest.raises(TwinOpConfigError, match="application, api_url, user, token, mqtt_uri, template_path"):
        OperatorConfig.from_env().validate()


def test_validate_rejects_bad_interval(env: pytest.MonkeyPatch) -> None:
    with pytest.raises(TwinOpConfigError):
        OperatorConfig.from_env(interval=0).validate()


def test_redacted_hides_token(env: pytest.MonkeyPatch) -> None:
    redacted = OperatorConfig.from_env().redacted()

    assert redacted["token"] == "<redacted>"
    assert redacted["user"] == "operator"


def test_parse_label_selector() -> None:
    assert parse_label_selector("") == {}
    assert parse_label_selector("a=1,b=") == {"a": "1", "b": ""}
    with pytest.raises(TwinOpConfigError):
        parse_label_selector("novalue")


def test_reconnect_policy_backoff() -> None:
    policy = ReconnectPolicy(initial_delay=0.1, max_delay=1.0, max_attempts=6)

    assert list(policy.delays()) == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0, 1.0])


def test_reconnect_policy_fixed_and_unbounded() -> None:
    policy = ReconnectPolicy(initial_delay=2.0, max_delay=2.0, multiplier=1.0, max_attempts=None)
    delays = policy.delays()

    assert [next(delays) for _ in range(50)] == [2.0] * 50


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_delay": 0},
        {"initial_delay": 5.0, "max_delay": 1.0},
        {"multiplier": 0.5},
        {"max_attempts": 0},
    ],
)
def test_reconnect_policy_validation(kwargs: dict[str, float]) -> None:
    with pytest.raises(TwinOpConfigError):
        ReconnectPolicy(**kwargs)  # type: ignore[arg-type]
