"""
Card identifier codec.

Card ids look like ``User101_003``. Shareable links carry a compact form of
the id: base64 with the URL-unsafe characters swapped (``+`` -> ``-``,
``/`` -> ``_``) and the ``=`` padding dropped.
"""
import base64
import binascii

from app.core.exceptions import DecodeError


def next_sequential_id(user_id: str, existing_count: int) -> str:
    """Next card id for ``user_id`` given how many cards it already owns.

    The sequence is zero-padded to three digits and keeps growing past 999.
    """
    return f"{user_id}_{existing_count + 1:03d}"


def encode_id(raw_id: str) -> str:
    encoded = base64.b64encode(raw_id.encode("utf-8")).decode("ascii")
    return encoded.replace("+", "-").replace("/", "_").rstrip("=")


def decode_id(token: str) -> str:
    """Reverse :func:`encode_id`.

    Raises:
        DecodeError: the token is not base64 once re-padded, or does not
            decode to UTF-8 text.
    """
    base64_str = token.replace("-", "+").replace("_", "/")
    base64_str += "=" * ((4 - len(base64_str) % 4) % 4)
    try:
        return base64.b64decode(base64_str, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Cannot decode token {token!r}: {e}") from e
