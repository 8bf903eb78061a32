"""Form plumbing shared by the JSON API blueprints."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import Field, IntegerField, StringField

from .errors import ValidationError

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def json_formdata(payload: Mapping[str, Any]) -> MultiDict:
    """Turn a JSON body into form data keyed by snake_case field names.

    ``null`` values are dropped so they read as "not supplied"; list values
    become repeated keys, which is what list fields consume.
    """

    formdata = MultiDict()
    for key, value in payload.items():
        if value is None:
            continue
        name = snake_case(str(key))
        if isinstance(value, (list, tuple)):
            for item in value:
                if item is not None:
                    formdata.add(name, item)
        else:
            formdata.add(name, value)
    return formdata


class JSONForm(FlaskForm):
    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload: Optional[Mapping[str, Any]], **kwargs: Any) -> "JSONForm":
        return cls(formdata=json_formdata(payload or {}), **kwargs)

    def validate_or_raise(self) -> None:
        if not self.validate():
            raise ValidationError(form_error_message(self), details={"fields": self.errors})


def form_error_message(form: FlaskForm) -> str:
    messages: List[str] = []
    for field_name, errors in form.errors.items():
        for error in errors:
            messages.append(f"{field_name}: {error}")
    return "; ".join(messages) or "Invalid request."


class StringListField(Field):
    """Collects every submitted value for the field into a list of strings."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        self.data = [str(item).strip() for item in valuelist if str(item).strip()]

    def process_data(self, value):
        self.data = list(value) if value else []

    def _value(self) -> str:
        return ", ".join(self.data or [])


class MappingField(Field):
    """Accepts a JSON object as-is."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = valuelist[0]
        if not isinstance(value, Mapping):
            self.data = None
            raise ValueError(self.gettext("Expected an object."))
        self.data = dict(value)

    def process_data(self, value):
        self.data = dict(value) if value else {}


class RecordListField(Field):
    """Accepts a JSON array of objects (e.g. character relationships)."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        records = []
        for item in valuelist:
            if not isinstance(item, Mapping):
                raise ValueError(self.gettext("Expected a list of objects."))
            records.append(dict(item))
        self.data = records

    def process_data(self, value):
        self.data = list(value) if value else []


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


class TextField(StringField):
    """String field that also accepts JSON numbers, e.g. numeric identifiers."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = valuelist[0]
        self.data = value if isinstance(value, str) else str(value)


def form_params(form: FlaskForm) -> Dict[str, Any]:
    """Collect the fields a caller actually supplied, skipping blanks."""

    params: Dict[str, Any] = {}
    for name, value in form.data.items():
        if value is None or value == "" or value == [] or value == {}:
            continue
        params[name] = value.strip() if isinstance(value, str) else value
    return params


def apply_form(form: FlaskForm, obj: Any) -> Any:
    """Copy form data onto ``obj``; blank text falls back to the field default."""

    for name, field in form._fields.items():
        value = field.data
        if isinstance(value, str):
            value = clean_text(value)
        if value is None and field.default is not None:
            value = field.default
        setattr(obj, name, value)
    return obj


class WholeNumberField(IntegerField):
    """Integer field that rejects fractional JSON numbers instead of truncating them."""

    def process_formdata(self, valuelist):
        if valuelist:
            value = valuelist[0]
            if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
                self.data = None
                raise ValueError(self.gettext("Not a valid integer value."))
        super().process_formdata(valuelist)
