"""
Request payload parsing for endpoints that accept multipart forms.

Form fields arrive as strings; nested lists (skills) arrive JSON-encoded in a
single field. Payloads are validated with the pydantic input schemas and any
validation failure is raised as a RequestValidationError so it gets the same
400 response as a normal body validation error.
"""

import json
from typing import Optional, Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from eventreg.exceptions import BadRequest

ModelT = TypeVar("ModelT", bound=BaseModel)

# form values that mean "clear this reference"
REMOVE_SENTINELS = {"", "null"}


def parse_json_list(raw, field: str) -> list:
    if isinstance(raw, list):
        return raw
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        raise BadRequest(f"{field.capitalize()} field must be a valid JSON array")
    if not isinstance(value, list):
        raise BadRequest(f"{field.capitalize()} field must be a valid JSON array")
    return value


async def read_payload(
    request: Request,
    upload_field: str,
    json_list_fields: tuple[str, ...] = (),
    removable: bool = False,
) -> tuple[dict, Optional[UploadFile]]:
    """
    Return ``(fields, upload)`` from a multipart or JSON request.

    A file part named ``upload_field`` becomes ``upload``. A text value under the
    same name is kept as a literal reference, or turned into None when
    ``removable`` and the value is one of REMOVE_SENTINELS.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise BadRequest("Malformed JSON body")
        if not isinstance(payload, dict):
            raise BadRequest("Request body must be a JSON object")
        upload = None
    else:
        form = await request.form()
        payload = {}
        upload = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                # browsers send an empty part when no file was chosen
                if key == upload_field and value.filename:
                    upload = value
                continue
            payload[key] = value

        if removable and payload.get(upload_field) in REMOVE_SENTINELS:
            payload[upload_field] = None
        elif not removable and payload.get(upload_field) == "":
            payload.pop(upload_field)

    for field in json_list_fields:
        if payload.get(field) is not None:
            payload[field] = parse_json_list(payload[field], field)

    return payload, upload


def validate_payload(model: Type[ModelT], payload: dict) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
