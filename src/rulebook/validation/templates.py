"""
Structural checks for label and annotation templates.

Rule labels and annotations use Go text/template actions such as
``{{ $labels.instance }}`` or ``{{ if gt $value 1.0 }}...{{ end }}``.
Templates are not rendered here; only their shape is checked.
"""

from __future__ import annotations

import re
from typing import Mapping, Protocol

from rulebook.core.errors import TemplateError

_BLOCK_OPENERS = {"if", "range", "with", "define", "block"}
_FIRST_WORD = re.compile(r"^\s*-?\s*([A-Za-z_]\w*)")


class TemplateValidator(Protocol):
    """Validates a mapping of templates; raises on the first malformed one."""

    def validate(self, templates: Mapping[str, str]) -> None: ...


class ActionTemplateValidator:
    """Default validator checking ``{{ ... }}`` action structure."""

    def validate(self, templates: Mapping[str, str]) -> None:
        for key, text in templates.items():
            try:
                self._validate_text(text)
            except TemplateError as exc:
                raise TemplateError(
                    f"key {key!r}, template {text!r}: {exc.message}",
                    details={"key": key},
                ) from exc

    def _validate_text(self, text: str) -> None:
        depth = 0
        pos = 0

        while True:
            start = text.find("{{", pos)
            if start == -1:
                break

            end = text.find("}}", start + 2)
            if end == -1:
                raise TemplateError(f"unclosed action at position {start}")

            body = text[start + 2 : end].strip().strip("-").strip()
            if not body:
                raise TemplateError(f"empty action at position {start}")

            if body.startswith("/*"):
                if not body.endswith("*/"):
                    raise TemplateError(f"unclosed comment at position {start}")
                pos = end + 2
                continue

            self._check_quotes(body, start)

            word = _FIRST_WORD.match(body)
            keyword = word.group(1) if word else ""
            if keyword in _BLOCK_OPENERS:
                depth += 1
            elif keyword == "end":
                depth -= 1
                if depth < 0:
                    raise TemplateError(f"unexpected {{{{end}}}} at position {start}")
            elif keyword == "else" and depth == 0:
                raise TemplateError(f"unexpected {{{{else}}}} at position {start}")

            pos = end + 2

        if depth > 0:
            raise TemplateError(f"unexpected EOF: {depth} unclosed block(s)")

    @staticmethod
    def _check_quotes(body: str, offset: int) -> None:
        quote = None
        i = 0
        while i < len(body):
            ch = body[i]
            if quote is None:
                if ch in ('"', "`"):
                    quote = ch
            elif ch == "\\" and quote == '"':
                i += 1
            elif ch == quote:
                quote = None
            i += 1
        if quote is not None:
            raise TemplateError(f"unterminated quoted string in action at position {offset}")


_default_validator = ActionTemplateValidator()


def validate_templates(templates: Mapping[str, str]) -> None:
    """Validate templates with the default action validator."""
    _default_validator.validate(templates)
