from __future__ import annotations

from twinop._redact import redact_for_log


def test_redact_for_log_masks_secrets_at_any_depth() -> None:
    payload = {
        "user": "operator",
        "token": "s3cret",
        "access_token": "abc",
        "nested": {"Authorization": "Basic xyz", "items": [{"client-secret": "x"}]},
    }

    redacted = redact_for_log(payload)

    assert redacted["user"] == "operator"
    assert redacted["token"] == "<redacted>"
    assert redacted["access_token"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"
    assert redacted["nested"]["items"][0]["client-secret"] == "<redacted>"


def test_redact_for_log_shortens_scripts() -> None:
    script = "function f() { return 1; }\n" * 10
    redacted = redact_for_log({"code": {"javaScript": script}}, script_preview=8)

    assert redacted["code"]["javaScript"] == "function…<truncated>"


def test_redact_for_log_masks_url_credentials() -> None:
    redacted = redact_for_log({"url": "https://user:pw@api.example.com/path"})

    assert redacted["url"] == "https://<redacted>@api.example.com/path"


def test_redact_for_log_truncates_long_strings() -> None:
    redacted = redact_for_log({"value": "x" * 600}, max_string=10)

    assert redacted["value"] == "x" * 10 + "…<truncated>"


def test_redact_for_log_handles_scalars_and_tuples() -> None:
    assert redact_for_log(None) is None
    assert redact_for_log(("a", 1, True)) == ["a", 1, True]
    assert redact_for_log(b"abc") == "<bytes:3b>"
