"""
Intel HEX Record Checksum
=========================

Each record ends with a checksum byte chosen so that the sum of every
decoded byte of the record (length, both load offset bytes, type, payload
and the checksum itself) is zero modulo 256.

The decoder keeps a running sum as fields complete and compares the two's
complement of that sum with the checksum field at the end of the record.

Usage
-----
    from ihex_reader.decoder.checksum import ChecksumTracker

    tracker = ChecksumTracker()
    for value in (0x03, 0x00, 0x30, 0x00, 0x02, 0x33, 0x7A):
        tracker.accumulate(value)
    assert tracker.finalize() == 0x1E
"""

from typing import Final, Iterable

BYTE_MASK: Final[int] = 0xFF


class ChecksumTracker:
    """Running 8-bit sum over the fields of the current record."""

    def __init__(self) -> None:
        self.total = 0

    def reset(self) -> None:
        self.total = 0

    def accumulate(self, value: int) -> None:
        """Add one byte to the running sum (modulo 256)."""
        self.total = (self.total + value) & BYTE_MASK

    def accumulate_word(self, word: int) -> None:
        """Add the high byte and then the low byte of a 16-bit value."""
        self.accumulate((word >> 8) & BYTE_MASK)
        self.accumulate(word & BYTE_MASK)

    def finalize(self) -> int:
        """
        Return the check value for the bytes accumulated so far.

        This is the two's complement of the running sum, truncated to
        8 bits. The running sum itself is left untouched.
        """
        return (~self.total + 1) & BYTE_MASK

    def matches(self, target: int) -> bool:
        return self.finalize() == target


def calculate_record_checksum(data: Iterable[int]) -> int:
    """
    Calculate the checksum byte for a record's decoded bytes.

    Args:
        data: Length, load offset (high, low), type and payload bytes

    Returns:
        The value the record's CC field must hold.

    Example:
        >>> hex(calculate_record_checksum(bytes([0x03, 0x00, 0x30, 0x00,
        ...                                      0x02, 0x33, 0x7A])))
        '0x1e'
    """
    tracker = ChecksumTracker()
    for value in data:
        tracker.accumulate(value)
    return tracker.finalize()
