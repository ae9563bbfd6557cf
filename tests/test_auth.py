import hashlib
import hmac

from form_courier.auth import sign_body, verify_signature

BODY = b'{"name":"A","email":"a@b.co","message":"hi"}'


def test_sign_body_matches_hmac_sha256():
    expected = hmac.new(b"k", BODY, hashlib.sha256).hexdigest()
    assert sign_body(BODY, "k") == expected


def test_verify_accepts_hex_in_any_case():
    signature = sign_body(BODY, "k")
    assert verify_signature(BODY, "k", signature)
    assert verify_signature(BODY, "k", signature.upper())
    assert verify_signature(BODY, "k", f"  {signature}\n")


def test_verify_rejects_single_byte_change():
    signature = sign_body(BODY, "k")
    tampered = BODY.replace(b"hi", b"hj")
    assert not verify_signature(tampered, "k", signature)


def test_verify_rejects_wrong_secret():
    assert not verify_signature(BODY, "other", sign_body(BODY, "k"))


def test_verify_rejects_missing_signature_or_secret():
    signature = sign_body(BODY, "k")
    assert not verify_signature(BODY, "k", None)
    assert not verify_signature(BODY, "k", "")
    assert not verify_signature(BODY, None, signature)
    assert not verify_signature(BODY, "", signature)


def test_verify_rejects_garbage_without_raising():
    assert not verify_signature(BODY, "k", "not-hex")
    assert not verify_signature(BODY, "k", "é" * 64)
