"""
Tests for correlation id generation and its deterministic helpers.
"""

import re

from goldenpath.core.determinism import (
    generate_correlation_id,
    payload_hash,
    rolling_hash,
    stable_json,
    to_base36,
)


class TestRollingHash:
    def test_known_values(self):
        assert rolling_hash("") == 0
        assert rolling_hash("a") == 97
        assert rolling_hash("ab") == 3105

    def test_collisions_are_possible(self):
        assert rolling_hash("Aa") == rolling_hash("BB") == 2112

    def test_wraps_to_signed_32_bit(self):
        assert rolling_hash("polygenelubricants") == -(2**31)
        assert to_base36(abs(rolling_hash("polygenelubricants"))) == "zik0zk"

    def test_hashes_utf16_code_units(self):
        # U+1F600 is the surrogate pair D83D DE00
        assert rolling_hash("\U0001f600") == 0xD83D * 31 + 0xDE00


class TestBase36:
    def test_digits(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"
        assert to_base36(97) == "2p"


class TestStableJson:
    def test_key_order_does_not_matter(self):
        assert stable_json({"b": 1, "a": [1, "é"]}) == '{"a":[1,"é"],"b":1}'
        assert payload_hash({"b": 1, "a": 2}) == payload_hash({"a": 2, "b": 1})

    def test_non_json_values_are_stringified(self):
        class Opaque:
            __slots__ = ()

            def __str__(self):
                return "opaque"

        assert stable_json({"v": Opaque()}) == '{"v":"opaque"}'

    def test_mixed_key_types(self):
        assert stable_json({"meta": {1: "a", "b": 2}}) == '{"meta":{"1":"a","b":2}}'
        assert stable_json({"b": {2: "x"}, 1: "y"}) == '{"1":"y","b":{"2":"x"}}'


class TestCorrelationId:
    def test_format(self):
        payload = {"pr_id": "42"}
        correlation_id = generate_correlation_id("workflow", payload, now_ms=1700000000000)
        assert correlation_id == f"workflow_1700000000000_{payload_hash(payload)}"

    def test_uses_wall_clock_by_default(self):
        assert re.fullmatch(r"callback_\d{13}_[0-9a-z]+", generate_correlation_id("callback", {}))

    def test_mixed_key_payload(self):
        payload = {"meta": {1: "a", "b": 2}}
        correlation_id = generate_correlation_id("workflow", payload, now_ms=5)
        assert correlation_id == f"workflow_5_{payload_hash({'meta': {'1': 'a', 'b': 2}})}"

    def test_same_input_same_millisecond_collides(self):
        a = generate_correlation_id("workflow", {"x": 1}, now_ms=5)
        b = generate_correlation_id("workflow", {"x": 1}, now_ms=5)
        assert a == b
