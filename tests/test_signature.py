import base64

from membership_bot.signature import (
    MAX_SIGNATURE_BYTES,
    MSG_NOT_AN_IMAGE,
    MSG_TOO_LARGE,
    check_signature,
    to_data_url,
)


def test_images_under_the_ceiling_are_accepted():
    assert check_signature("image/png", 2048) is None
    assert check_signature("image/jpeg", MAX_SIGNATURE_BYTES) is None
    assert check_signature("image/png", None) is None


def test_non_images_are_rejected():
    assert check_signature("application/pdf", 10) == MSG_NOT_AN_IMAGE
    assert check_signature(None, 10) == MSG_NOT_AN_IMAGE


def test_oversized_images_are_rejected():
    assert check_signature("image/png", MAX_SIGNATURE_BYTES + 1) == MSG_TOO_LARGE


def test_data_url_is_self_describing():
    url = to_data_url(b"\x89PNG", "image/png")
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]) == b"\x89PNG"
