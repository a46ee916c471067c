"""Request body checks, run before the engine sees any input."""

from __future__ import annotations

from typing import Any

from fastapi import Request

from piiscan.errors import ValidationError
from piiscan.scanner.patterns import PatternSet


async def read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    return require_mapping(body)


def require_mapping(body: Any) -> dict:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def require_string(body: dict, key: str) -> str:
    value = body.get(key)
    if not value or not isinstance(value, str):
        raise ValidationError(f"Invalid or missing {key} in request body")
    return value


def optional_string_list(body: dict, key: str, required: bool = False) -> list[str] | None:
    value = body.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be an array")
    if not all(isinstance(item, str) for item in value):
        raise ValidationError(f"{key} must contain only strings")
    return value


def require_patterns(body: dict, key: str = "regexPairs") -> PatternSet:
    value = body.get(key)
    if not value or not isinstance(value, dict):
        raise ValidationError(f"Invalid or missing {key} in request body")
    return PatternSet(value)
