"""
Unit tests for canonical encoding and the bounded decode loop.
"""

from __future__ import annotations

import json
from decimal import Decimal

import pytest

from consentid.primitives.canonical import (
    canonicalize,
    decode_until_structured,
    deep_copy_json,
    encode_structured,
    encode_uri_component,
    format_js_number,
    is_numeric_text,
    normalize_number,
)


# ─── Canonical JSON ─────────────────────────────────────────────


class TestCanonicalize:
    def test_compact_and_ordered(self):
        assert canonicalize({"b": 1, "a": [1, 2]}) == '{"b":1,"a":[1,2]}'

    def test_keeps_unicode(self):
        assert canonicalize({"name": "Zoë"}) == '{"name":"Zoë"}'

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            canonicalize({"x": float("nan")})

    def test_rejects_unserialisable(self):
        with pytest.raises(TypeError):
            canonicalize({"x": object()})

    def test_deep_copy_is_independent(self):
        original = {"a": {"b": [1]}}
        copy = deep_copy_json(original)
        copy["a"]["b"].append(2)
        assert original == {"a": {"b": [1]}}


# ─── Percent-encoding ───────────────────────────────────────────


class TestUriComponent:
    def test_matches_encode_uri_component_safe_set(self):
        assert encode_uri_component("a-b_c.d!e~f*g'h(i)j") == "a-b_c.d!e~f*g'h(i)j"

    def test_encodes_reserved(self):
        assert encode_uri_component('{"a":"b c/d"}') == "%7B%22a%22%3A%22b%20c%2Fd%22%7D"

    def test_encodes_utf8(self):
        assert encode_uri_component("ë") == "%C3%AB"

    def test_encode_structured(self):
        assert encode_structured({"test": 0.42}) == "%7B%22test%22%3A0.42%7D"


# ─── Decode loop ────────────────────────────────────────────────


class TestDecodeUntilStructured:
    def test_dict_passes_through(self):
        value = {"a": 1}
        assert decode_until_structured(value) is value

    def test_plain_json(self):
        assert decode_until_structured('{"a":1}') == {"a": 1}

    def test_percent_encoded_json(self):
        assert decode_until_structured(encode_structured({"a": "b c"})) == {"a": "b c"}

    def test_double_stringified(self):
        twice = json.dumps(json.dumps({"a": 1}))
        assert decode_until_structured(twice) == {"a": 1}

    def test_stringified_percent_encoding(self):
        layered = json.dumps(encode_structured({"a": 1}))
        assert decode_until_structured(layered) == {"a": 1}

    def test_depth_cap(self):
        value = json.dumps({"a": 1})
        for _ in range(5):
            value = json.dumps(value)
        with pytest.raises(ValueError):
            decode_until_structured(value, max_depth=5)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            decode_until_structured("not json at all")

    def test_non_object_rejected(self):
        with pytest.raises(ValueError):
            decode_until_structured("[1,2]")


# ─── Numbers ────────────────────────────────────────────────────


class TestNormalizeNumber:
    def test_integral_float_drops_fraction(self):
        assert normalize_number(5.0) == "5"

    def test_fraction_kept(self):
        assert normalize_number(0.42) == "0.42"

    def test_int(self):
        assert normalize_number(42) == "42"

    def test_bool(self):
        assert normalize_number(True) == "true"

    def test_decimal(self):
        assert normalize_number(Decimal("5.00")) == "5"
        assert normalize_number(Decimal("1.5")) == "1.5"

    def test_infinity_rejected(self):
        with pytest.raises(ValueError):
            normalize_number(float("inf"))

    def test_numeric_text(self):
        assert is_numeric_text("42")
        assert is_numeric_text(" 0.5")
        assert not is_numeric_text("forty-two")
        assert not is_numeric_text("")
        assert not is_numeric_text("nan")


# ─── JavaScript number formatting ───────────────────────────────


class TestFormatJsNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1e-7, "1e-7"),
            (1e-6, "0.000001"),
            (1e16, "10000000000000000"),
            (1e21, "1e+21"),
            (5e-324, "5e-324"),
            (1.5e300, "1.5e+300"),
            (123.456, "123.456"),
            (-0.0, "0"),
            (-2.5, "-2.5"),
        ],
    )
    def test_matches_number_to_string(self, value, expected):
        assert format_js_number(value) == expected

    def test_normalize_number_uses_js_form(self):
        assert normalize_number(1e-7) == "1e-7"
        assert normalize_number(1e16) == "10000000000000000"
        assert normalize_number(1e21) == "1e+21"
        assert normalize_number(5e-324) == "5e-324"

    def test_canonicalize_uses_js_form(self):
        assert canonicalize({"test": 1e-7, "big": 1e16, "n": [5.0]}) == (
            '{"test":1e-7,"big":10000000000000000,"n":[5]}'
        )

    def test_canonicalize_coerces_keys_like_json(self):
        assert canonicalize({1: "a", 2.5: "b", None: "c"}) == '{"1":"a","2.5":"b","null":"c"}'
