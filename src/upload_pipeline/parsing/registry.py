from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .schema import FormSchema


@dataclass(frozen=True)
class FormSpec:
    """Pairs a form with the table its valid objects are imported into."""
    form: FormSchema[Any]
    table_name: str
    default_validate_for: str = "upload"


def get_form_spec(form_name: str) -> FormSpec:
    """
    A registry that assigns an upload form its schema and target table.
    `FieldSpec` defines the rules inside the profile modules.
    """
    if form_name == "cities":
        from .profiles.cities import CITY_FORM
        return FormSpec(form=CITY_FORM, table_name="upload_cities")

    raise ValueError(f"Unknown form: {form_name}")


FORM_NAMES = ("cities",)
