# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Honeypot and required-field rules for decoded submissions.

The returned reason code is for internal logging only; callers answer every
failure with the same ``invalid submission`` response so submitters cannot
learn which rule fired.
"""

from __future__ import annotations

import re

from .models import Submission

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# The name is echoed into the Reply-To header.
HEADER_BREAK = re.compile(r"[\r\n]")

REASON_HONEYPOT = "honeypot"
REASON_NAME = "name"
REASON_EMAIL = "email"
REASON_MESSAGE = "message"


def validate_submission(submission: Submission) -> str | None:
    """Return None if ``submission`` is acceptable, else a reason code."""
    if submission.website != "":
        return REASON_HONEYPOT
    if submission.name == "" or HEADER_BREAK.search(submission.name):
        return REASON_NAME
    if not EMAIL_PATTERN.fullmatch(submission.email):
        return REASON_EMAIL
    if not submission.message.strip():
        return REASON_MESSAGE
    return None
