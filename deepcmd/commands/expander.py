"""Template expansion engine for command prompts.

Templates are rendered with a sandboxed Jinja2 environment in lenient mode:
an undefined variable, or an attribute of one, renders as an empty string so
templates degrade gracefully when optional context (git diff, conversation)
is absent.

Example template:
```
Review {{ args.file }} for {{ env.USER }}.
{% if git_diff %}Changes:
{{ git_diff }}{% endif %}
{% for f in files %}- {{ f }}
{% endfor %}
```
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

from jinja2 import ChainableUndefined, Template, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from deepcmd.commands.context import ExecutionContext
from deepcmd.errors import ExpansionError

logger = logging.getLogger(__name__)

_MAX_CACHED_TEMPLATES = 256


def _finalize(value: Any) -> Any:
    return "" if value is None else value


class TemplateExpander:
    """Render command templates against an execution context.

    Compiled templates are cached by ``(command name, body)``; a reload that
    changes a body therefore compiles a fresh template.
    """

    def __init__(self) -> None:
        self._environment = SandboxedEnvironment(
            undefined=ChainableUndefined,
            autoescape=False,
            keep_trailing_newline=False,
            finalize=_finalize,
        )
        self._cache: dict[tuple[str | None, str], Template] = {}
        self._cache_lock = threading.Lock()

    def _compile(self, template_body: str, command_name: str | None) -> Template:
        key = (command_name, template_body)
        with self._cache_lock:
            template = self._cache.get(key)
        if template is not None:
            return template

        try:
            template = self._environment.from_string(template_body)
        except TemplateError as exc:
            raise ExpansionError(f"Template syntax error: {exc}", command_name=command_name) from exc

        with self._cache_lock:
            if len(self._cache) >= _MAX_CACHED_TEMPLATES:
                self._cache.clear()
            self._cache[key] = template
        return template

    def render(
        self, template_body: str, namespace: Mapping[str, Any], *, command_name: str | None = None
    ) -> str:
        """Render a template against an explicit variable namespace.

        Args:
            template_body: Raw template text.
            namespace: Variables visible to the template.
            command_name: Command the template belongs to, used in errors.

        Returns:
            The rendered text.

        Raises:
            ExpansionError: If the template cannot be compiled or rendering fails.
        """
        template = self._compile(template_body, command_name)
        try:
            return template.render(dict(namespace))
        except TemplateError as exc:
            raise ExpansionError(str(exc), command_name=command_name) from exc
        except (TypeError, ValueError, ArithmeticError, LookupError) as exc:
            logger.debug("Template for %s raised %r", command_name, exc)
            raise ExpansionError(f"{type(exc).__name__}: {exc}", command_name=command_name) from exc

    def expand(
        self,
        template_body: str,
        context: ExecutionContext,
        args: Mapping[str, str] | None = None,
        *,
        command_name: str | None = None,
    ) -> str:
        """Expand a command template with the given context and mapped arguments.

        Args:
            template_body: Raw template text.
            context: Execution context.
            args: Mapped command arguments.
            command_name: Command the template belongs to, used in errors.

        Returns:
            The expanded prompt.

        Raises:
            ExpansionError: If the template engine fails.
        """
        return self.render(template_body, context.template_namespace(args or {}), command_name=command_name)
