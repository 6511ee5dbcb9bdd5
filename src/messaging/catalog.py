"""Localized message catalog.

Messages live in ``locales/<language>.yaml`` as ``message_id: template``
pairs. Templates are Jinja2 strings with named placeholders such as
``{{ Status }}`` and ``{{ ApplicationNumber }}``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, Template

LOCALES_DIR = Path(__file__).parent / "locales"


class MessageCatalog:
    """Read-only map from message id to rendered text."""

    def __init__(self, messages: dict[str, str], language: str = "ru"):
        self.language = language
        self._env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )
        self._templates: dict[str, Template] = {
            key: self._env.from_string(str(value)) for key, value in messages.items()
        }

    @classmethod
    def load(cls, language: str = "ru", locales_dir: Path | None = None) -> MessageCatalog:
        """Load the catalog for a language.

        Args:
            language: Locale name, matching a ``<language>.yaml`` file.
            locales_dir: Directory holding the locale files.

        Raises:
            FileNotFoundError: If the locale file does not exist.
            ValueError: If the file is not a mapping of strings.
        """
        path = (locales_dir or LOCALES_DIR) / f"{language}.yaml"
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid message catalog: {path}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Message catalog must be a mapping: {path}")
        return cls({str(k): str(v) for k, v in data.items()}, language=language)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._templates

    def render(self, message_id: str, **data: Any) -> str:
        """Render a message.

        Raises:
            KeyError: If the message id is unknown.
            jinja2.UndefinedError: If a placeholder has no value.
        """
        try:
            template = self._templates[message_id]
        except KeyError:
            raise KeyError(f"Unknown message id: {message_id}") from None
        return template.render(**data)
