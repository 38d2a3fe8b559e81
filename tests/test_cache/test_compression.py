"""Tests for the gzip compression codec."""

import numpy as np
import pytest

from strata.cache.compression import MAGIC, CompressionCodec, is_compressed
from strata.cache.tiers import CacheTier
from strata.errors import CompressionError, ErrorCode, SerializationError


@pytest.fixture
def codec():
    return CompressionCodec(threshold_bytes=1024)


class TestShouldCompress:
    """Tests for the compression decision."""

    def test_large_value_for_warm(self, codec):
        """Test values at or above the threshold bound for warm/cold are compressed."""
        assert codec.should_compress("x" * 2000, 2000, CacheTier.WARM)
        assert codec.should_compress("x" * 1024, 1024, CacheTier.COLD)

    def test_never_for_hot(self, codec):
        """Test hot entries stay raw."""
        assert not codec.should_compress("x" * 2000, 2000, CacheTier.HOT)

    def test_below_threshold(self, codec):
        """Test small values stay raw."""
        assert not codec.should_compress("x" * 1023, 1023, CacheTier.WARM)

    def test_disabled(self):
        """Test a disabled codec never compresses."""
        codec = CompressionCodec(enabled=False)
        assert not codec.should_compress("x" * 2000, 2000, CacheTier.COLD)

    def test_numpy_arrays_stay_raw(self, codec):
        """Test arrays are never compressed."""
        array = np.zeros(1000, dtype=np.float32)
        assert not codec.should_compress(array, array.nbytes, CacheTier.WARM)

    def test_already_compressed(self, codec):
        """Test compressed payloads are not compressed twice."""
        payload = codec.compress("x" * 2000)
        assert not codec.should_compress(payload, 2000, CacheTier.COLD)


class TestCompressDecompress:
    """Tests for compress()/decompress()."""

    def test_string(self, codec):
        """Test a string comes back unchanged and smaller in between."""
        value = "x" * 2000
        payload = codec.compress(value)

        assert payload.startswith(MAGIC)
        assert len(payload) < 2000
        assert codec.decompress(payload) == value

    def test_dict_keeps_key_order(self, codec):
        """Test JSON round trip preserves insertion order."""
        value = {"b": 1, "a": [1, 2, 3], "c": {"nested": True}}
        result = codec.decompress(codec.compress(value))

        assert result == value
        assert list(result) == ["b", "a", "c"]

    def test_binary_as_bytes(self, codec):
        """Test binary payloads round-trip byte-for-byte."""
        value = b"\x00\xff" * 1000
        assert codec.decompress(codec.compress(value), as_bytes=True) == value

    def test_json_looking_bytes_need_as_bytes(self, codec):
        """Test bytes that parse as JSON come back as bytes only with as_bytes."""
        payload = codec.compress(b"123")
        assert codec.decompress(payload) == 123
        assert codec.decompress(payload, as_bytes=True) == b"123"

    def test_non_json_bytes_fall_back(self, codec):
        """Test undecodable payloads come back as raw bytes."""
        value = b"\x80\x81\x82"
        assert codec.decompress(codec.compress(value)) == value

    def test_unserializable_value(self, codec):
        """Test values with no JSON form raise SerializationError."""
        with pytest.raises(SerializationError):
            codec.compress(object())

    def test_missing_marker(self, codec):
        """Test payloads without the marker are rejected."""
        with pytest.raises(CompressionError) as exc_info:
            codec.decompress(b"plain bytes")
        assert exc_info.value.code == ErrorCode.CACHE_DECOMPRESSION_FAILED

    def test_corrupt_payload(self, codec):
        """Test a marker followed by garbage is rejected."""
        with pytest.raises(CompressionError) as exc_info:
            codec.decompress(MAGIC + b"not gzip data")
        assert exc_info.value.code == ErrorCode.CACHE_DECOMPRESSION_FAILED


class TestIsCompressed:
    """Tests for marker detection."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (b"GZ", False),
            (b"GZx", True),
            (bytearray(b"GZabc"), True),
            (b"ZZabc", False),
            ("GZabc", False),
            (None, False),
        ],
    )
    def test_marker(self, value, expected):
        """Test only bytes-like values longer than the marker qualify."""
        assert is_compressed(value) is expected
