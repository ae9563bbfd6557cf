# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared-secret request signatures.

A site that configures a secret requires every submission to carry an
``X-Signature`` header holding the hex HMAC-SHA256 of the exact raw request
body, keyed with that secret. Sites without a secret skip this check.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Signature"


def sign_body(body: bytes, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, secret: str | None, signature: str | None) -> bool:
    """Check ``signature`` against the HMAC of ``body``.

    The hex encoding is compared case-insensitively and in constant time.
    Never raises: an empty secret, a missing signature or a signature that
    is not plain ASCII all yield False.
    """
    if not secret or not signature:
        return False
    provided = signature.strip().lower()
    if not provided.isascii():
        return False
    expected = sign_body(body, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.encode("ascii"))
