"""Tests for address codecs."""

import pytest
from hypothesis import given, strategies as st
from solders.pubkey import Pubkey
from web3 import Web3

from twinbridge.core.codec import (
    decode_base58,
    encode_base58,
    parse_hex_payload,
    public_key_to_bytes32,
    to_checksum_address,
    to_fixed_width_address,
    to_pubkey,
)
from twinbridge.core.errors import FormatError


class TestBase58:
    """base58 encode/decode."""

    @given(st.binary(min_size=1, max_size=64))
    def test_round_trip_bytes(self, data):
        assert decode_base58(encode_base58(data)) == data

    def test_round_trip_text(self):
        text = "HNCne2FkVaNghhjKXapxJzPaBvAKDG1Ge3gqhZyfVWLM"
        assert encode_base58(decode_base58(text)) == text

    def test_leading_ones_become_zero_bytes(self):
        assert decode_base58("111") == b"\x00\x00\x00"
        assert decode_base58("11").startswith(b"\x00\x00")

    @pytest.mark.parametrize("text", ["0abc", "abcO", "Il", "abc def"])
    def test_rejects_characters_outside_alphabet(self, text):
        with pytest.raises(FormatError):
            decode_base58(text)

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_base58("0")


class TestFixedWidthAddress:
    """Hex and byte address normalization."""

    def test_forty_hex_chars_yield_twenty_bytes(self):
        assert to_fixed_width_address("ab" * 20) == b"\xab" * 20

    def test_prefixed_input(self):
        assert to_fixed_width_address("0x" + "cd" * 20) == b"\xcd" * 20

    def test_thirty_nine_hex_chars_fail(self):
        with pytest.raises(FormatError):
            to_fixed_width_address("a" * 39)

    def test_non_hex_characters_fail(self):
        with pytest.raises(FormatError):
            to_fixed_width_address("zz" * 20)

    def test_bytes_must_match_width(self):
        assert to_fixed_width_address(b"\x01" * 20) == b"\x01" * 20
        with pytest.raises(FormatError):
            to_fixed_width_address(b"\x01" * 19)

    def test_custom_width(self):
        assert to_fixed_width_address("00" * 32, width=32) == bytes(32)

    def test_checksum_address(self):
        lower = "0x3eff766c76a1be2ce1acf2b69c78bcae257d5188"
        checksum = to_checksum_address(lower)
        assert checksum == Web3.to_checksum_address(lower)
        assert checksum != lower


class TestPublicKeys:
    """Solana key conversions."""

    def test_system_program_is_all_zero(self):
        assert public_key_to_bytes32("11111111111111111111111111111111") == bytes(32)

    def test_matches_solders(self):
        key = "g1et5VenhfJHJwsdJsDbxWZuotD5H4iELNG61kS4fb9"
        assert public_key_to_bytes32(key) == bytes(Pubkey.from_string(key))
        assert to_pubkey(key) == Pubkey.from_string(key)

    def test_wrong_length_rejected(self):
        with pytest.raises(FormatError):
            public_key_to_bytes32("abc")


class TestHexPayload:
    """Call payload parsing."""

    def test_empty(self):
        assert parse_hex_payload(None) == b""
        assert parse_hex_payload("0x") == b""

    def test_even_length(self):
        assert parse_hex_payload("0xdeadbeef") == bytes.fromhex("deadbeef")

    def test_odd_length_rejected(self):
        with pytest.raises(FormatError):
            parse_hex_payload("0xabc")
