"""Jinja2 rendering for the markdown report."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

TEMPLATES_ENV_VAR = "GIT_CLONE_TEMPLATES_DIR"
PACKAGE_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def render_template(name: str, context: Mapping[str, Any]) -> str:
    """Render ``name`` from the package templates, or from ``GIT_CLONE_TEMPLATES_DIR`` when set."""
    templates_dir = Path(os.environ.get(TEMPLATES_ENV_VAR) or PACKAGE_TEMPLATES_DIR).expanduser()
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    try:
        template = env.get_template(name)
    except TemplateNotFound as exc:
        raise FileNotFoundError(f"Report template '{name}' not found under {templates_dir}") from exc
    return template.render(**context)
