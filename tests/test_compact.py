"""Tests for JWE compact serialization."""

import json

import pytest

from jwe_crypto.core import compact
from jwe_crypto.core.exceptions import MalformedMessageError


class TestBase64Url:
    """Tests for unpadded base64url encoding."""

    def test_encode_strips_padding(self):
        """Test that encoding never emits '='."""
        assert compact.b64url_encode(b"a") == "YQ"
        assert compact.b64url_encode(b"ab") == "YWI"
        assert compact.b64url_encode(b"abc") == "YWJj"

    def test_encode_is_url_safe(self):
        """Test that '-' and '_' replace '+' and '/'."""
        assert compact.b64url_encode(b"\xfb\xff") == "-_8"

    @pytest.mark.parametrize(
        "encoded, expected",
        [
            ("YWJj", b"abc"),  # len % 4 == 0
            ("YQ", b"a"),  # len % 4 == 2
            ("YWI", b"ab"),  # len % 4 == 3
            ("", b""),
        ],
    )
    def test_decode_restores_padding(self, encoded, expected):
        """Test decoding of every valid unpadded length."""
        assert compact.b64url_decode(encoded) == expected

    def test_decode_length_one_mod_four_fails(self):
        """Test that a length of 1 mod 4 is rejected."""
        with pytest.raises(MalformedMessageError):
            compact.b64url_decode("YWJjZ")

    def test_decode_accepts_padded_input(self):
        """Test that padded input is tolerated."""
        assert compact.b64url_decode("YQ==") == b"a"

    @pytest.mark.parametrize("bad", ["YW!j", "YW+j", "YW/j", "Y W", "é"])
    def test_decode_rejects_non_alphabet(self, bad):
        """Test that characters outside the base64url alphabet fail."""
        with pytest.raises(MalformedMessageError):
            compact.b64url_decode(bad)


class TestParse:
    """Tests for splitting compact messages."""

    def _message(self, header=None):
        header = header or {"alg": "RSA-OAEP-256", "enc": "A256GCM"}
        header_b64 = compact.b64url_encode(json.dumps(header).encode())
        return compact.serialize(header_b64, b"key", b"iv-bytes", b"ciphertext", b"t" * 16)

    def test_parse_roundtrip(self):
        """Test that serialize output parses back into its segments."""
        parts = compact.parse(self._message())

        assert parts.encrypted_key == b"key"
        assert parts.iv == b"iv-bytes"
        assert parts.ciphertext == b"ciphertext"
        assert parts.tag == b"t" * 16
        assert json.loads(parts.header)["enc"] == "A256GCM"

    def test_parse_keeps_header_as_received(self):
        """Test that the raw header segment is kept verbatim."""
        message = self._message()

        parts = compact.parse(message)

        assert parts.header_b64 == message.split(".")[0]

    @pytest.mark.parametrize("count", [1, 4, 6])
    def test_wrong_segment_count(self, count):
        """Test that anything but five segments is malformed."""
        message = ".".join(["YQ"] * count)

        with pytest.raises(MalformedMessageError):
            compact.parse(message)

    def test_bad_segment(self):
        """Test that an undecodable segment is malformed."""
        segments = self._message().split(".")
        segments[2] = "not*base64"

        with pytest.raises(MalformedMessageError):
            compact.parse(".".join(segments))

    def test_non_string(self):
        """Test that bytes input is rejected."""
        with pytest.raises(MalformedMessageError):
            compact.parse(b"a.b.c.d.e")


class TestHeader:
    """Tests for protected header decoding."""

    def test_read_header(self):
        """Test reading the header without decrypting."""
        header = {"alg": "RSA-OAEP-256", "enc": "A256GCM", "kid": "abc", "cty": "application/json"}
        header_b64 = compact.b64url_encode(json.dumps(header).encode())
        message = compact.serialize(header_b64, b"k", b"i", b"c", b"t")

        assert compact.read_header(message) == header

    def test_header_not_json(self):
        """Test that a non-JSON header is malformed."""
        with pytest.raises(MalformedMessageError):
            compact.decode_header(b"{not json")

    def test_header_not_object(self):
        """Test that a JSON header must be an object."""
        with pytest.raises(MalformedMessageError):
            compact.decode_header(b'["A256GCM"]')

    def test_header_invalid_utf8(self):
        """Test that undecodable header bytes are malformed."""
        with pytest.raises(MalformedMessageError):
            compact.decode_header(b"\xff\xfe")
