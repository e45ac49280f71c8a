from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from upload_pipeline.parsing.primitives import digits, length, parse_int, parse_required_text
from upload_pipeline.parsing.schema import FieldSpec, FormSchema


@dataclass(frozen=True, slots=True)
class City:
    """A row of `upload_cities`."""
    id: int
    city: str

    def to_mapping(self) -> Mapping[str, Any]:
        return {"id": self.id, "city": self.city}


CITY_FORM: FormSchema[City] = FormSchema(
    name="cities",
    fields=[
        FieldSpec(
            name="id",
            parser=lambda v: parse_int(v, field="id"),
            rules=(digits(10),),
        ),
        FieldSpec(
            name="city",
            parser=lambda v: parse_required_text(v, field="city"),
            rules=(length(3, 10),),
        ),
    ],
    profiles={"upload": ("id", "city")},
    factory=lambda values: City(**values),
)
