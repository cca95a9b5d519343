"""
consentid -- Canonical Encoding

One definition of the byte-level forms that get signed and transmitted:

  canonicalize()            compact JSON, insertion order, UTF-8 kept as-is,
                            numbers printed the way JSON.stringify prints them
  encode_uri_component()    percent-encoding with the encodeURIComponent safe set
  decode_until_structured() bounded decode loop for transport data that may
                            arrive percent-encoded, JSON-stringified, or both

Insertion order is kept (no key sorting) so that a bundle produced by another
implementation of the protocol re-encodes to exactly the string that was signed.
"""

from __future__ import annotations

import json
import math
from decimal import Decimal
from typing import Any
from urllib.parse import quote, unquote

# Characters encodeURIComponent leaves untouched besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"

DEFAULT_MAX_DECODE_DEPTH = 5


def format_js_number(value: float) -> str:
    """
    ECMAScript Number::toString for a finite float.

    Python's repr already yields the shortest round-tripping digits; only the
    placement of the decimal point and the exponent notation differ
    ('1e-07' vs '1e-7', '1e+16' vs '10000000000000000').
    """
    if not math.isfinite(value):
        raise ValueError(f"non-finite number: {value!r}")
    if value == 0:
        return "0"
    if value < 0:
        return "-" + format_js_number(-value)

    mantissa, _, exp = repr(value).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    n = len(int_part) + (int(exp) if exp else 0)

    stripped = digits.lstrip("0")
    n -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * -n + digits

    e = n - 1
    sign = "+" if e >= 0 else "-"
    head = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{head}e{sign}{abs(e)}"


def _key(key: Any) -> str:
    # Same key coercions as json.dumps
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    if isinstance(key, int):
        return int.__repr__(key)
    if isinstance(key, float):
        return format_js_number(key)
    raise TypeError(f"keys must be str, int, float, bool or None, not {type(key).__name__}")


def canonicalize(value: Any) -> str:
    """
    Stable JSON string for signing, byte-identical to JSON.stringify.

    Raises ValueError for NaN/Infinity and TypeError for values JSON cannot
    represent; callers translate both into their own error type.
    """
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, int):
        return int.__repr__(value)
    if isinstance(value, float):
        return format_js_number(value)
    if isinstance(value, dict):
        items = (
            json.dumps(_key(k), ensure_ascii=False) + ":" + canonicalize(v)
            for k, v in value.items()
        )
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(v) for v in value) + "]"
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def deep_copy_json(value: Any) -> Any:
    """Deep copy through the canonical form. Drops anything not JSON-representable."""
    return json.loads(canonicalize(value))


def encode_uri_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE, encoding="utf-8", errors="strict")


def decode_uri_component(text: str) -> str:
    return unquote(text, encoding="utf-8", errors="strict")


def encode_structured(value: Any) -> str:
    """Canonical JSON, percent-encoded. The exact string both signatures cover."""
    return encode_uri_component(canonicalize(value))


def decode_until_structured(
    value: Any,
    max_depth: int = DEFAULT_MAX_DECODE_DEPTH,
) -> dict[str, Any]:
    """
    Peel transport layers until a JSON object appears.

    Each pass either parses one JSON layer or, when the text is not JSON,
    removes one layer of percent-encoding. Raises ValueError when no object
    emerges within max_depth passes or a layer cannot be undone.
    """
    current = value
    for _ in range(max_depth):
        if isinstance(current, dict):
            return current
        if not isinstance(current, str):
            raise ValueError(f"expected a JSON object, got {type(current).__name__}")
        try:
            current = json.loads(current)
        except json.JSONDecodeError:
            unquoted = decode_uri_component(current)
            if unquoted == current:
                raise ValueError("transport data is neither JSON nor percent-encoded") from None
            current = unquoted

    if isinstance(current, dict):
        return current
    raise ValueError(f"no JSON object after {max_depth} decode passes")


def normalize_number(value: int | float | Decimal) -> str:
    """
    String form of a number as JavaScript's String() prints it.

    Floats and Decimals go through format_js_number, so '5.0' becomes '5'
    and 1e-7 stays '1e-7'. Decimals are rounded to the nearest double, the
    value a JavaScript producer would hold.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"non-finite number: {value!r}")
        return format_js_number(float(value))
    if isinstance(value, float):
        return format_js_number(value)
    return int.__repr__(value)


def is_numeric_text(text: str) -> bool:
    """True for strings that read as a finite number ('42', ' 0.5', '1e3')."""
    stripped = text.strip()
    if not stripped:
        return False
    try:
        return math.isfinite(float(stripped))
    except ValueError:
        return False
