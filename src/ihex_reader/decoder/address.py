"""
Address Extension Tracking
==========================

Data records only carry a 16-bit load offset. Two record types extend it:

- **Extended Segment Address (02)**: the 2-byte payload is a segment
  number; the base offset is that number times 16.
- **Extended Linear Address (04)**: the 2-byte payload is the upper
  16 bits (bits 16-31) of the base offset.

The base applies to every following data record until another extension
record replaces it:

    absolute address = base + load offset + payload byte index

Bytes are collected into an array of four byte slots (slot 0 least
significant). Segment records fill slots 1 and 0, linear records fill
slots 3 and 2, most significant byte first. The slots are converted to the
32-bit base in one step.
"""

import logging
from typing import Final

from ihex_reader.decoder.records import RecordType

logger = logging.getLogger(__name__)

ADDRESS_MASK: Final[int] = 0xFFFFFFFF
BASE_SLOTS: Final[int] = 4

# First slot written by each extension record type
_FIRST_SLOT: Final[dict[int, int]] = {
    RecordType.EXTENDED_SEGMENT_ADDRESS: 1,
    RecordType.EXTENDED_LINEAR_ADDRESS: 3,
}

# Segment numbers are in paragraphs of 16 bytes
SEGMENT_SHIFT: Final[int] = 4


class AddressExtensionTracker:
    """
    Holds the 32-bit extension base for one decoding stream.

    Attributes:
        base: Current extension base, applied to data records
        byte_pos: Slot the next extension payload byte goes to, or -1 when
            no extension record is being collected
    """

    def __init__(self) -> None:
        self.base = 0
        self.byte_pos = -1
        self._slots = [0] * BASE_SLOTS
        self._record_type = RecordType.DATA

    def reset(self) -> None:
        """Clear the base; used at the start of a stream."""
        self.base = 0
        self.byte_pos = -1
        self._slots = [0] * BASE_SLOTS

    def start(self, record_type: int) -> None:
        """
        Begin collecting the payload of an extension record.

        The base is cleared immediately, before any payload byte arrives.
        """
        self._record_type = RecordType(record_type)
        self._slots = [0] * BASE_SLOTS
        self.base = 0
        self.byte_pos = _FIRST_SLOT[record_type]

    def feed(self, value: int) -> None:
        """Place one extension payload byte in the next slot."""
        if self.byte_pos < 0:
            logger.debug(f"Ignoring extra extension byte 0x{value:02X}")
            return

        self._slots[self.byte_pos] = value & 0xFF
        self.byte_pos -= 1
        self.base = self._assemble()

        if self.byte_pos < 0 or (
            self._record_type == RecordType.EXTENDED_LINEAR_ADDRESS
            and self.byte_pos < 2
        ):
            self.byte_pos = -1
            logger.debug(f"Extension base set to 0x{self.base:08X}")

    def _assemble(self) -> int:
        value = int.from_bytes(bytes(reversed(self._slots)), "big")
        if (self._record_type == RecordType.EXTENDED_SEGMENT_ADDRESS
                and self.byte_pos < 0):
            value <<= SEGMENT_SHIFT
        return value & ADDRESS_MASK

    def absolute_address(self, load_offset: int, byte_index: int) -> int:
        """Absolute address of a data byte, wrapping at 32 bits."""
        return (self.base + load_offset + byte_index) & ADDRESS_MASK
