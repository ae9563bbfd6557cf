# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Decode raw request bodies into :class:`Submission` records.

Exactly one format is attempted per request, chosen from the content type
and the formats enabled for the deployment:

  application/json          parsed as a single JSON object (if JSON is enabled)
  anything else             parsed as form fields (if forms are enabled);
                            only application/x-www-form-urlencoded bodies
                            carry fields, other types decode to empty fields
  nothing enabled matches   UnsupportedMediaType (415)

A body that cannot be parsed in the selected format raises
MalformedPayload, so callers can tell a broken body from a wrong format.
"""

from __future__ import annotations

from urllib.parse import parse_qsl

from .errors import MalformedPayload, UnsupportedMediaType
from .models import Submission

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
FORM_FIELDS = ("name", "email", "message", "website")


def media_type(content_type: str | None) -> str:
    """Return the bare, lower-cased media type of a Content-Type header."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def decode_json(body: bytes) -> Submission:
    try:
        return Submission.model_validate_json(body)
    except ValueError as exc:
        # pydantic.ValidationError subclasses ValueError
        raise MalformedPayload() from exc


def decode_form(body: bytes) -> Submission:
    try:
        text = body.decode("utf-8")
        pairs = parse_qsl(text, keep_blank_values=True, errors="strict")
    except ValueError as exc:
        raise MalformedPayload() from exc

    fields: dict[str, str] = {}
    for key, value in pairs:
        # First occurrence wins.
        if key in FORM_FIELDS and key not in fields:
            fields[key] = value
    return Submission(**fields)


def decode_payload(
    body: bytes,
    content_type: str | None,
    *,
    allow_json: bool,
    allow_form: bool,
) -> Submission:
    """Turn a raw body into a :class:`Submission`.

    Args:
        body: Raw request bytes.
        content_type: Value of the Content-Type header, if any.
        allow_json: Whether JSON bodies are accepted by this deployment.
        allow_form: Whether form bodies are accepted by this deployment.

    Raises:
        MalformedPayload: The body is not valid in the selected format.
        UnsupportedMediaType: No enabled format applies.
    """
    kind = media_type(content_type)
    if kind == JSON_MEDIA_TYPE and allow_json:
        return decode_json(body)
    if allow_form:
        if kind == FORM_MEDIA_TYPE:
            return decode_form(body)
        return Submission()
    raise UnsupportedMediaType()
