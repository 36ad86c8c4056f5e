"""Field-level request validation with human-readable messages.

Request schemas subclass :class:`ApiModel` and declare an ``error_messages``
table mapping ``field -> rule -> message``. Pydantic failures are translated
into that vocabulary so callers always receive a flat list of
``{"field": ..., "message": ...}`` entries instead of an exception trace.

Rules:

* ``required``  - field missing, or an empty string where text is required
* ``type``      - value could not be parsed (number, date, id, list, ...)
* ``min``/``max`` - numeric bound violated
* ``min_items`` - list shorter than allowed
* ``enum``      - value outside the allowed set
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, TypeVar, get_args

from fastapi import Request
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from backend.app.core.exceptions import PayloadValidationError

M = TypeVar("M", bound=BaseModel)

_RULES: dict[str, str] = {
    "missing": "required",
    "string_too_short": "required",
    "greater_than": "min",
    "greater_than_equal": "min",
    "less_than": "max",
    "less_than_equal": "max",
    "too_short": "min_items",
    "enum": "enum",
    "literal_error": "enum",
}

_TYPE_ERRORS = {
    "bool_parsing",
    "bool_type",
    "date_from_datetime_inexact",
    "date_from_datetime_parsing",
    "date_parsing",
    "date_type",
    "datetime_from_date_parsing",
    "datetime_parsing",
    "datetime_type",
    "decimal_parsing",
    "decimal_type",
    "dict_type",
    "finite_number",
    "float_parsing",
    "float_type",
    "int_from_float",
    "int_parsing",
    "int_type",
    "list_type",
    "model_type",
    "string_type",
    "uuid_parsing",
    "uuid_type",
}

_VALUE_ERROR_PREFIX = "Value error, "


class ApiModel(BaseModel):
    """Base for request schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    error_messages: ClassVar[dict[str, dict[str, str]]] = {}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    for arg in get_args(annotation):
        found = _nested_model(arg)
        if found is not None:
            return found
    return None


def _field_name(model: type[BaseModel], key: str) -> str | None:
    if key in model.model_fields:
        return key
    for name, info in model.model_fields.items():
        if info.alias == key:
            return name
    return None


def _owner_of(model: type[BaseModel], loc: tuple[Any, ...]) -> tuple[type[BaseModel], str | None]:
    """Walk an error location and return (model declaring the field, field name)."""
    owner: type[BaseModel] = model
    field: str | None = None
    current: type[BaseModel] | None = model
    for part in loc:
        if isinstance(part, int) or current is None:
            continue
        name = _field_name(current, str(part))
        if name is None:
            break
        owner, field = current, name
        current = _nested_model(current.model_fields[name].annotation)
    return owner, field


def _humanize(name: str) -> str:
    words = name.replace("_", " ").strip()
    return words[:1].upper() + words[1:]


def _message_for(model: type[BaseModel], error: dict[str, Any]) -> str:
    error_type = error["type"]
    owner, field = _owner_of(model, tuple(error["loc"]))
    rule = "type" if error_type in _TYPE_ERRORS else _RULES.get(error_type)
    # Some pydantic releases report a blank constrained str as too_short
    if error_type == "too_short" and isinstance(error.get("input"), str):
        rule = "required"

    if field is not None and rule is not None:
        table = getattr(owner, "error_messages", {})
        custom = table.get(field, {}).get(rule)
        if custom:
            return custom
        if rule == "required":
            return f"{_humanize(field)} is required"

    message = str(error.get("msg", "Invalid value"))
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]
    return message


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "body"


def errors_from_exception(model: type[BaseModel], exc: ValidationError) -> list[FieldError]:
    return [
        FieldError(field=_field_path(tuple(err["loc"])), message=_message_for(model, err))
        for err in exc.errors()
    ]


def collect_errors(model: type[BaseModel], data: Any) -> list[FieldError]:
    """Return every field-level problem with *data*; empty when it is valid."""
    try:
        model.model_validate(data)
    except ValidationError as exc:
        return errors_from_exception(model, exc)
    return []


def validate_payload(model: type[M], data: Any) -> M:
    """Parse *data* into *model* or raise :class:`PayloadValidationError`."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        errors = errors_from_exception(model, exc)
        raise PayloadValidationError([e.as_dict() for e in errors]) from exc


# ─── FastAPI dependency factories ─────────────────────────────────────────────


def validated_body(model: type[M]) -> Callable[..., Any]:
    """Dependency that parses the JSON body with our error vocabulary.

    Usage::

        @router.post("")
        def create(payload: DGInvoiceCreate = Depends(validated_body(DGInvoiceCreate))):
            ...
    """

    async def _dependency(request: Request) -> M:
        try:
            data = await request.json()
        except ValueError:
            raise PayloadValidationError(
                [{"field": "body", "message": "Request body must be valid JSON"}]
            )
        return validate_payload(model, data)

    return _dependency


def validated_query(model: type[M]) -> Callable[..., Any]:
    """Dependency that parses query-string parameters into *model*."""

    def _dependency(request: Request) -> M:
        data = {k: v for k, v in request.query_params.items() if v != ""}
        return validate_payload(model, data)

    return _dependency
