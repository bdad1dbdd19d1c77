"""Request-shape validation and normalization at the RPC boundary.

Payloads are trimmed/lowercased first, then checked against a JSON schema.
Anything malformed raises ``ValidationError`` before the services run.
"""

from __future__ import annotations

from typing import Any, Dict, List

import jsonschema

from .errors import ValidationError
from .models import Role

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

_ID = {"type": "string", "pattern": UUID_PATTERN}
_USERNAME = {"type": "string", "minLength": 2}
_EMAIL = {"type": "string", "pattern": EMAIL_PATTERN}
# At least 8 characters with upper and lower case letters, a digit and a symbol.
_PASSWORD = {
    "type": "string",
    "minLength": 8,
    "allOf": [
        {"pattern": "[A-Z]"},
        {"pattern": "[a-z]"},
        {"pattern": "[0-9]"},
        {"pattern": "[^A-Za-z0-9]"},
    ],
}
_ROLES = {"type": "array", "items": {"type": "string", "enum": list(Role.ALL)}, "minItems": 1}

LOGIN_SCHEMA = {
    "type": "object",
    "required": ["username", "password"],
    "properties": {
        "username": {"type": "string"},
        "password": {"type": "string"},
    },
}

TOKEN_SCHEMA = {
    "type": "object",
    "required": ["token"],
    "properties": {"token": {"type": "string", "minLength": 1}},
}

CREATE_USER_SCHEMA = {
    "type": "object",
    "required": ["username", "email", "created_by"],
    "properties": {
        "username": _USERNAME,
        "email": _EMAIL,
        "password": _PASSWORD,
        "roles": _ROLES,
        "created_by": _ID,
    },
    "additionalProperties": False,
}

UPDATE_USER_SCHEMA = {
    "type": "object",
    "required": ["id"],
    "properties": {
        "id": _ID,
        "username": _USERNAME,
        "email": _EMAIL,
        "password": _PASSWORD,
        "roles": _ROLES,
    },
    "additionalProperties": False,
}

PAGINATION_SCHEMA = {
    "type": "object",
    "properties": {
        "page": {"type": "integer", "minimum": 1},
        "limit": {"type": "integer", "minimum": 1},
    },
}

REQUESTING_USER_SCHEMA = {
    "type": "object",
    "required": ["roles"],
    "properties": {"roles": {"type": "array", "items": {"type": "string"}}},
}

FIND_ALL_SCHEMA = {
    "type": "object",
    "required": ["user"],
    "properties": {
        "pagination": {"type": ["object", "null"]},
        "user": {"type": "object"},
    },
    "additionalProperties": False,
}

ID_SCHEMA = {"type": "object", "required": ["id"], "properties": {"id": _ID}}

IDS_SCHEMA = {
    "type": "object",
    "required": ["ids"],
    "properties": {"ids": {"type": "array", "items": _ID}},
}

USERNAME_SCHEMA = {"type": "object", "required": ["username"], "properties": {"username": {"type": "string"}}}
EMAIL_SCHEMA = {"type": "object", "required": ["email"], "properties": {"email": {"type": "string"}}}


def validate(data: Any, schema: Dict[str, Any]) -> Dict[str, Any]:
    errors: List[str] = []
    for error in jsonschema.Draft7Validator(schema).iter_errors(data):
        location = ".".join(str(p) for p in error.absolute_path) or "payload"
        errors.append(f"{location}: {error.message}")
    if errors:
        raise ValidationError("Validation failed", sorted(errors))
    return data


def _as_object(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Validation failed", ["payload: must be an object"])
    return dict(data)


def _clean(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def login_payload(data: Any) -> Dict[str, Any]:
    payload = _as_object(data)
    if isinstance(payload.get("username"), str):
        payload["username"] = payload["username"].lower()
    return validate(payload, LOGIN_SCHEMA)


def token_payload(data: Any) -> Dict[str, Any]:
    return validate(_as_object(data), TOKEN_SCHEMA)


def create_user_payload(data: Any) -> Dict[str, Any]:
    payload = _as_object(data)
    for key in ("username", "email"):
        if key in payload:
            payload[key] = _clean(payload[key])
    if payload.get("password") is None:
        payload.pop("password", None)
    return validate(payload, CREATE_USER_SCHEMA)


def update_user_payload(data: Any) -> Dict[str, Any]:
    payload = _as_object(data)
    for key in ("username", "email"):
        if key in payload:
            payload[key] = _clean(payload[key])
    return validate(payload, UPDATE_USER_SCHEMA)


def pagination_payload(data: Any) -> Dict[str, int]:
    payload = _as_object(data if data is not None else {})
    payload.setdefault("page", DEFAULT_PAGE)
    payload.setdefault("limit", DEFAULT_LIMIT)
    validate(payload, PAGINATION_SCHEMA)
    return {"page": payload["page"], "limit": payload["limit"]}


def requesting_user_payload(data: Any) -> Dict[str, Any]:
    return validate(_as_object(data), REQUESTING_USER_SCHEMA)


def find_all_payload(data: Any) -> Dict[str, Any]:
    """Outer ``{pagination, user}`` envelope of a listing call."""
    payload = validate(_as_object(data), FIND_ALL_SCHEMA)
    return {
        **pagination_payload(payload.get("pagination")),
        "user": requesting_user_payload(payload["user"]),
    }


def id_payload(data: Any) -> str:
    return validate(_as_object(data), ID_SCHEMA)["id"]


def ids_payload(data: Any) -> List[str]:
    return validate(_as_object(data), IDS_SCHEMA)["ids"]


def username_payload(data: Any) -> str:
    return _clean(validate(_as_object(data), USERNAME_SCHEMA)["username"])


def email_payload(data: Any) -> str:
    return _clean(validate(_as_object(data), EMAIL_SCHEMA)["email"])
