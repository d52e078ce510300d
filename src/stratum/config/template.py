"""
Template expansion of string configuration values.

A string value may reference other configuration keys with Jinja2 syntax:

    image_name: "{{ distro }}-{{ release }}"

Expansion is a single pass. Referenced values are fetched raw and inserted
as they are, so a value that itself contains a template is never expanded
again. References that cannot be resolved are left literal.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import jinja2 as _jinja2
import jinja2.meta as _jinja2_meta

_logger = _logging.getLogger(__name__)

Lookup = _typing.Callable[[str], _typing.Any]
"""Returns the raw value of a configuration key, or None if unset."""

_MARKERS = ("{{", "{%")


class TemplateExpander:
    """
    Single-pass Jinja2 expander bound to a key lookup function.

    Args:
        lookup: Returns the raw (unexpanded) value of a key, or None.
    """

    def __init__(self, lookup: Lookup) -> None:
        self._lookup = lookup
        self._env = _jinja2.Environment(
            loader=_jinja2.BaseLoader(),
            undefined=_jinja2.DebugUndefined,  # Leave unresolved references literal
            keep_trailing_newline=True,
            autoescape=False,
        )

    def variables(self, text: str) -> set[str]:
        """Names referenced by a template string. Empty on syntax errors."""
        try:
            ast = self._env.parse(text)
        except _jinja2.TemplateSyntaxError:
            return set()
        return set(_jinja2_meta.find_undeclared_variables(ast))

    def expand(self, value: _typing.Any) -> _typing.Any:
        """
        Expand a value if it is a template string.

        Non-strings and strings without template markers are returned
        unchanged. Template errors leave the string unchanged.
        """
        if not isinstance(value, str) or not any(marker in value for marker in _MARKERS):
            return value

        context: dict[str, _typing.Any] = {}
        for name in self.variables(value):
            resolved = self._lookup(name)
            if resolved is not None:
                context[name] = resolved

        try:
            return self._env.from_string(value).render(context)
        except _jinja2.TemplateError as e:
            _logger.debug("Template expansion failed for %r: %s", value, e)
            return value

    __call__ = expand
