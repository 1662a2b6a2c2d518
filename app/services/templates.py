from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class TemplateRegistry:
    """
    Compiled page templates keyed by template id.

    Templates are looked up as `<template_id>.html` in the template
    directory on first use and cached on the instance. Tests can register
    in-memory templates with `register` instead of touching the filesystem.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        self._template_dir = template_dir or TEMPLATE_DIR
        self._env = Environment(
            loader=FileSystemLoader(str(self._template_dir)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._templates: Dict[str, Template] = {}

    def register(self, template_id: str, source: str) -> None:
        self._templates[template_id] = self._env.from_string(source)

    def get(self, template_id: str) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            try:
                template = self._env.get_template(f"{template_id}.html")
            except TemplateNotFound as exc:
                raise KeyError(f"Unknown page template: {template_id}") from exc
            self._templates[template_id] = template
        return template

    def render(self, template_id: str, data: Mapping[str, Any]) -> str:
        return self.get(template_id).render(**data)

    def template_ids(self) -> List[str]:
        on_disk = {path.stem for path in self._template_dir.glob("*.html")}
        return sorted(on_disk | set(self._templates))


_default_registry: TemplateRegistry | None = None


def get_template_registry() -> TemplateRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = TemplateRegistry()
    return _default_registry
