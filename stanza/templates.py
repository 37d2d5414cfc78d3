"""
Templates - Renderer collaborator for envelopes that name a view.

Provides:
- TemplateRenderer: protocol the Response renders through
- Jinja2Renderer: async Jinja2 renderer over a template directory

View ids map to files by suffix: ``ListView`` -> ``ListView.html``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound, select_autoescape

from .faults import TemplateRenderError


logger = logging.getLogger("stanza.templates")

PathLike = Union[str, Path]


class TemplateRenderer(Protocol):
    """Anything that can turn a view id and a context into HTML."""

    async def render(self, view_id: str, context: Mapping[str, Any]) -> str:
        ...


class Jinja2Renderer:
    """
    Async Jinja2 renderer.

    Args:
        directories: Template directory or directories (searched in order)
        suffix: File suffix appended to view ids
        autoescape: Enable HTML autoescaping
        globals: Extra template globals
        filters: Extra template filters

    Example:
        renderer = Jinja2Renderer("templates")
        html = await renderer.render("ListView", {"poems": poems})
    """

    def __init__(
        self,
        directories: Union[PathLike, List[PathLike]],
        *,
        suffix: str = ".html",
        autoescape: bool = True,
        globals: Optional[Dict[str, Any]] = None,
        filters: Optional[Dict[str, Callable]] = None,
    ):
        if isinstance(directories, (str, Path)):
            directories = [directories]
        self.directories = [Path(d) for d in directories]
        self.suffix = suffix

        self.env = Environment(
            loader=FileSystemLoader([str(d) for d in self.directories]),
            autoescape=select_autoescape(
                enabled_extensions=["html", "htm", "xml"],
                default_for_string=True,
            ) if autoescape else False,
            enable_async=True,
        )

        if globals:
            self.env.globals.update(globals)
        if filters:
            self.env.filters.update(filters)

    def template_name(self, view_id: str) -> str:
        """File name for a view id."""
        if self.suffix and not view_id.endswith(self.suffix):
            return f"{view_id}{self.suffix}"
        return view_id

    async def render(self, view_id: str, context: Mapping[str, Any]) -> str:
        """
        Render a view.

        Raises:
            TemplateRenderError: If the template is missing or fails to render
        """
        name = self.template_name(view_id)
        try:
            template = self.env.get_template(name)
            return await template.render_async(**dict(context))
        except TemplateNotFound as e:
            raise TemplateRenderError(
                f"Template not found: {name}",
                metadata={"template": name},
            ) from e
        except TemplateError as e:
            logger.error("Template %s failed to render: %s", name, e)
            raise TemplateRenderError(
                f"Template rendering failed: {e}",
                metadata={"template": name},
            ) from e
