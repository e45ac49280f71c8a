from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

from upload_pipeline.messages import DEFAULT_CATALOG, Message, MessageCatalog

from .primitives import ParseError, Rule, normalize_cell
from .types import Record, ValidationOutcome, ViolationCode

T = TypeVar("T")

Parser = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Any given field's configurable expectations."""
    name: str                       # record field name, also the converted key.
    parser: Parser                  # how to parse this field's value.
    required: bool = True           # whether or not this field's value must exist.
    rules: Sequence[Rule] = ()      # checks run on the parsed value, in order.


@dataclass(frozen=True)
class FormSchema(Generic[T]):
    """
    Validate records and convert them into `T`.

    `profiles` maps a `validate_for` name to the fields it checks. Every
    violation of the profile's fields is collected, in `fields` order, with
    at most one message per field (first failing check wins for a field).
    """
    name: str
    fields: Sequence[FieldSpec]
    factory: Callable[[dict[str, Any]], T]
    profiles: Mapping[str, Sequence[str]] = field(default_factory=dict)

    def field_names_for(self, validate_for: str) -> Sequence[str]:
        try:
            return self.profiles[validate_for]
        except KeyError:
            raise ValueError(f"{self.name}: unknown validate_for {validate_for!r}") from None

    def validate(
        self,
        record: Record,
        *,
        validate_for: str,
        catalog: MessageCatalog = DEFAULT_CATALOG,
    ) -> ValidationOutcome[T]:
        """
        Returns a valid outcome holding the converted object, or an invalid one
        holding the messages. Never raises for bad record content.
        """
        wanted = set(self.field_names_for(validate_for))

        out: dict[str, Any] = {}
        messages: list[Message] = []
        for f in self.fields:
            if f.name not in wanted:
                continue
            try:
                raw_v = normalize_cell(record.get(f.name))
                if raw_v is None:
                    if f.required:
                        raise ParseError(ViolationCode.missing_required, f.name)
                    out[f.name] = None
                    continue

                v = f.parser(raw_v)
                for rule in f.rules:
                    rule(v, f.name)
                out[f.name] = v
            except ParseError as e:
                messages.append(catalog.error(e.code.value, *e.params))

        if messages:
            return ValidationOutcome(
                record_number=record.record_number,
                form_name=self.name,
                validate_for=validate_for,
                messages=tuple(messages),
            )
        return ValidationOutcome(
            record_number=record.record_number,
            form_name=self.name,
            validate_for=validate_for,
            converted=self.factory(out),
        )
