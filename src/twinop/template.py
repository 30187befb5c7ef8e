"""Thing template loader."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from twinop.exceptions import TwinOpTemplateError
from twinop.models.template import ThingTemplate

_logger = logging.getLogger(__name__)


def parse_template(text: str, *, base_dir: str | Path | None = None) -> ThingTemplate:
    """Parse a YAML template document.

    External script references are resolved relative to *base_dir*.
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise TwinOpTemplateError(f"template is not valid YAML: {exc}") from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise TwinOpTemplateError("template document must be a mapping")

    context = {"base_dir": Path(base_dir)} if base_dir is not None else None
    try:
        return ThingTemplate.model_validate(document, context=context)
    except ValidationError as exc:
        raise TwinOpTemplateError(f"invalid template: {exc}") from exc


def load_template(path: str | Path) -> ThingTemplate:
    """Load the template at *path*; any failure raises :class:`TwinOpTemplateError`."""
    template_path = Path(path)
    try:
        text = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TwinOpTemplateError(f"failed to read template {template_path}: {exc}") from exc

    template = parse_template(text, base_dir=template_path.parent)
    _logger.info(
        "Loaded thing template from %s: synthetics=%s changed=%s deleting=%s timers=%s",
        template_path,
        list(template.synthetics),
        list(template.reconciliation.changed),
        list(template.reconciliation.deleting),
        list(template.reconciliation.timers),
    )
    return template
