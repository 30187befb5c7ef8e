from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from twinop.exceptions import TwinOpTemplateError
from twinop.template import load_template, parse_template


def test_inline_template() -> None:
    template = parse_template(
        """
synthetics:
  temperature:
    javaScript: "return 1;"
  alias:
    alias: temp
reconciliation:
  timers:
    tick:
      code:
        javaScript: "tick();"
      period: 1h 30m
"""
    )

    assert template.synthetics["temperature"].java_script == "return 1;"
    assert template.synthetics["alias"].alias == "temp"
    assert template.reconciliation.timers["tick"].period == timedelta(hours=1, minutes=30)
    assert template.reconciliation.changed == {}


def test_empty_sections_are_allowed() -> None:
    template = parse_template("synthetics:\nreconciliation:\n  changed:\n")

    assert template.synthetics == {}
    assert template.reconciliation.changed == {}


def test_external_script_resolves_relative_to_template(tmp_path: Path) -> None:
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    (scripts / "changed.js").write_text("onChange();\n", encoding="utf-8")
    template_file = tmp_path / "template.yaml"
    template_file.write_text(
        "reconciliation:\n  changed:\n    notify:\n      javaScript:\n        path: scripts/changed.js\n",
        encoding="utf-8",
    )

    template = load_template(template_file)

    assert template.reconciliation.changed["notify"].java_script == "onChange();\n"


def test_missing_external_script_fails(tmp_path: Path) -> None:
    text = "synthetics:\n  t:\n    javaScript:\n      path: nope.js\n"

    with pytest.raises(TwinOpTemplateError, match="external source"):
        parse_template(text, base_dir=tmp_path)


def test_missing_template_file_fails(tmp_path: Path) -> None:
    with pytest.raises(TwinOpTemplateError):
        load_template(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "synthetics: [",
        "- just\n- a list\n",
        "synthetics:\n  t:\n    javaScript: a\n    alias: b\n",
        "synthetics:\n  t: {}\n",
        "reconciliation:\n  timers:\n    t:\n      code:\n        javaScript: x\n      period: soon\n",
        "reconciliation:\n  timers:\n    t:\n      code:\n        javaScript: x\n      period: 0s\n",
        "unknown: 1\n",
        "synthetics:\n  t:\n    javaScript:\n      path: a.js\n      extra: 1\n",
    ],
    ids=[
        "bad-yaml",
        "not-a-mapping",
        "script-and-alias",
        "neither-script-nor-alias",
        "bad-period",
        "zero-period",
        "unknown-key",
        "bad-source-object",
    ],
)
def test_invalid_templates_rejected(text: str) -> None:
    with pytest.raises(TwinOpTemplateError):
        parse_template(text)


def test_template_is_immutable() -> None:
    template = parse_template("synthetics:\n  t:\n    alias: x\n")

    with pytest.raises(ValidationError):
        template.synthetics["t"].alias = "y"  # type: ignore[misc]
