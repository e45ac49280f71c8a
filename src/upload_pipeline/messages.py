from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class MessageLevel(str, Enum):
    """Severity of a user facing message."""
    info = "INFO"
    warn = "WARN"
    error = "ERROR"


@dataclass(frozen=True, slots=True)
class Message:
    """A formatted message tied to a message id."""
    level: MessageLevel
    message_id: str
    text: str

    def format_message(self) -> str:
        return self.text

    def __str__(self) -> str:
        return self.text


class MessageCatalog:
    """
    Message id -> template lookup.

    Templates use positional `str.format` placeholders, e.g. `"{0} is required."`.
    An id with no template still produces a message (`"<id> <args...>"`),
    so a missing catalog entry never hides the underlying error.
    """

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates: dict[str, str] = dict(templates or {})

    def template_for(self, message_id: str) -> str | None:
        return self._templates.get(message_id)

    def merged(self, templates: Mapping[str, str]) -> MessageCatalog:
        """New catalog with `templates` layered over this one."""
        return MessageCatalog({**self._templates, **templates})

    def create_message(self, level: MessageLevel, message_id: str, *args: Any) -> Message:
        template = self._templates.get(message_id)
        if template is None:
            text = " ".join([message_id, *(str(a) for a in args)])
        else:
            text = template.format(*args)
        return Message(level=level, message_id=message_id, text=text)

    def error(self, message_id: str, *args: Any) -> Message:
        """Shorthand for an `ERROR` level message."""
        return self.create_message(MessageLevel.error, message_id, *args)


# ids emitted by the form schema engine (see `parsing.types.ViolationCode`)
DEFAULT_CATALOG = MessageCatalog(
    {
        "missing_required": "{0} is required.",
        "invalid_int": "{0} must be an integer.",
        "invalid_length": "{0} is not in the range {1} through {2}.",
        "too_many_digits": "{0} length must be under {1}.",
        "invalid_value": "{0} value is invalid.",
    }
)
