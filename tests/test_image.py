"""
Memory Image Tests
==================

Tests for MemoryImage, both standalone and bound to a Reader.
"""

import pytest

from ihex_reader.decoder import Message, Reader, RecordType
from ihex_reader.errors import ImageError
from ihex_reader.image import MemoryImage, MemorySegment, Mismatch


def decode_into(image: MemoryImage, data: bytes) -> list:
    reader = Reader(image.write)
    reader.begin()
    return [status for _, status in reader.feed_all(data)]


class TestMemoryImage:
    """Tests for storing and querying bytes."""

    def test_empty(self):
        image = MemoryImage()
        assert len(image) == 0
        assert image.start_address is None
        assert image.end_address is None
        assert image.segments() == []

    def test_write_and_get(self):
        image = MemoryImage()
        assert image.write(0x100, 0xAB) == Message.CONTINUE
        assert image[0x100] == 0xAB
        assert 0x100 in image
        assert 0x101 not in image
        assert image.get(0x101) is None
        assert image.get(0x101, 0xFF) == 0xFF

    def test_overwrite(self):
        image = MemoryImage()
        image.write(0x10, 0x01)
        image.write(0x10, 0x02)
        assert image[0x10] == 0x02
        assert len(image) == 1

    def test_iteration_sorted(self):
        image = MemoryImage()
        for address in (0x30, 0x10, 0x20):
            image.write(address, address)
        assert list(image) == [(0x10, 0x10), (0x20, 0x20), (0x30, 0x30)]

    def test_bounds(self):
        image = MemoryImage.from_bytes(b"\x01\x02\x03", base=0x8000)
        assert image.start_address == 0x8000
        assert image.end_address == 0x8003

    def test_segments(self):
        image = MemoryImage()
        for address in (0x00, 0x01, 0x02, 0x10, 0x11):
            image.write(address, 0xAA)
        assert image.segments() == [
            MemorySegment(0x00, b"\xAA\xAA\xAA"),
            MemorySegment(0x10, b"\xAA\xAA"),
        ]

    def test_segment_str(self):
        segment = MemorySegment(0x10000, b"\x00" * 4)
        assert segment.size == 4
        assert segment.end_address == 0x10004
        assert str(segment) == "0x00010000-0x00010003 (4 bytes)"


class TestToBytes:
    """Tests for MemoryImage.to_bytes()."""

    def test_gaps_filled(self):
        image = MemoryImage()
        image.write(0x00, 0x11)
        image.write(0x03, 0x44)
        assert image.to_bytes() == b"\x11\xFF\xFF\x44"
        assert image.to_bytes(fill=0x00) == b"\x11\x00\x00\x44"

    def test_explicit_window(self):
        image = MemoryImage.from_bytes(b"\x01\x02\x03\x04", base=0x10)
        assert image.to_bytes(start=0x11, end=0x13) == b"\x02\x03"
        assert image.to_bytes(start=0x0E, end=0x12) == b"\xFF\xFF\x01\x02"

    def test_empty_window(self):
        image = MemoryImage.from_bytes(b"\x01")
        assert image.to_bytes(start=0x00, end=0x00) == b""

    def test_empty_image_needs_bounds(self):
        with pytest.raises(ImageError, match="empty"):
            MemoryImage().to_bytes()
        assert MemoryImage().to_bytes(start=0, end=2) == b"\xFF\xFF"

    def test_start_above_end(self):
        with pytest.raises(ImageError):
            MemoryImage.from_bytes(b"\x01").to_bytes(start=4, end=2)

    @pytest.mark.parametrize("fill", [-1, 0x100])
    def test_fill_out_of_range(self, fill):
        with pytest.raises(ImageError, match="Fill byte"):
            MemoryImage.from_bytes(b"\x01").to_bytes(fill=fill)


class TestVerifyMode:
    """Tests for verifying against a reference image."""

    def test_matching_bytes(self):
        image = MemoryImage(reference=MemoryImage.from_bytes(b"\x02\x33\x7A", 0x30))
        assert image.write(0x30, 0x02) == Message.CONTINUE
        assert image.mismatches == []

    def test_mismatch(self):
        image = MemoryImage(reference=MemoryImage.from_bytes(b"\x02", 0x30))
        assert image.write(0x30, 0x03) == Message.VERIFICATION_ERROR
        assert image.mismatches == [Mismatch(0x30, 0x02, 0x03)]
        # The byte is stored anyway
        assert image[0x30] == 0x03

    def test_outside_reference(self):
        image = MemoryImage(reference=MemoryImage.from_bytes(b"\x02", 0x30))
        assert image.write(0x40, 0x00) == Message.VERIFICATION_ERROR
        assert image.mismatches == [Mismatch(0x40, None, 0x00)]


class TestImageWithReader:
    """MemoryImage bound as the Reader's data callback."""

    def test_decode_sample(self, sample_hex):
        image = MemoryImage()
        statuses = decode_into(image, sample_hex)
        assert statuses.count(Message.END) == 1
        assert [str(s) for s in image.segments()] == [
            "0x00000030-0x00000032 (3 bytes)",
            "0x00010000-0x00010003 (4 bytes)",
            "0x00010100-0x00010101 (2 bytes)",
        ]
        assert image.to_bytes(start=0x10000, end=0x10004) == b"\xDE\xAD\xBE\xEF"

    def test_verification_error_reported_by_reader(self, build_record):
        reference = MemoryImage.from_bytes(b"\x01\x02\x03", base=0x0200)
        image = MemoryImage(reference=reference)
        line = build_record(RecordType.DATA, 0x0200, b"\x01\x09\x03")

        statuses = decode_into(image, line)

        assert statuses.count(Message.VERIFICATION_ERROR) == 1
        # The failing byte is the second payload byte, completed at index 12
        assert statuses[12] == Message.VERIFICATION_ERROR
        assert statuses[-1] == Message.CONTINUE
        assert image.mismatches == [Mismatch(0x0201, 0x02, 0x09)]
