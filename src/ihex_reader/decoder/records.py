"""
Intel HEX Record Definitions
============================

This module defines the enumerations and data structures shared by the
streaming decoder components.

Record Format
-------------
Every record is one line of ASCII text:

    :LLAAAATTDD...DDCC

    :     Record mark
    LL    Payload length in bytes (2 hex digits, 0-255)
    AAAA  Load offset (4 hex digits, big-endian)
    TT    Record type (2 hex digits)
    DD    Payload bytes (2 hex digits each, LL of them)
    CC    Checksum: two's complement of the sum of all decoded bytes

Record Types
------------
- 00: Data
- 01: End of file
- 02: Extended segment address (base = segment * 16)
- 03: Start segment address (CS:IP, ignored by the decoder)
- 04: Extended linear address (upper 16 bits of the base)
- 05: Start linear address (EIP, ignored by the decoder)

Any other type value is accepted structurally: its digits are parsed and
checksummed but its payload is discarded.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional


# =============================================================================
# Enumeration Types
# =============================================================================

class RecordType(IntEnum):
    """Intel HEX record type codes."""
    DATA = 0x00
    END_OF_FILE = 0x01
    EXTENDED_SEGMENT_ADDRESS = 0x02
    START_SEGMENT_ADDRESS = 0x03
    EXTENDED_LINEAR_ADDRESS = 0x04
    START_LINEAR_ADDRESS = 0x05

    @classmethod
    def is_known(cls, type_byte: int) -> bool:
        """Check if a type byte is one of the standard record types."""
        return type_byte in cls._value2member_map_

    @classmethod
    def is_extension(cls, type_byte: int) -> bool:
        """Check if a type byte sets the address extension base."""
        return type_byte in (cls.EXTENDED_SEGMENT_ADDRESS,
                             cls.EXTENDED_LINEAR_ADDRESS)

    @classmethod
    def get_name(cls, type_byte: int) -> str:
        """Get a human-readable name for a record type."""
        names = {
            0x00: "Data",
            0x01: "End Of File",
            0x02: "Extended Segment Address",
            0x03: "Start Segment Address",
            0x04: "Extended Linear Address",
            0x05: "Start Linear Address",
        }
        return names.get(type_byte, f"Unknown (0x{type_byte:02X})")


class LexerState(IntEnum):
    """States of the record state machine, in their fixed cyclic order."""
    WAIT_MARK = 0
    WAIT_LENGTH = 1
    WAIT_ADDRESS = 2
    WAIT_TYPE = 3
    WAIT_DATA = 4
    WAIT_CHECKSUM = 5


class TokenType(IntEnum):
    """Decoded units emitted by the state machine as fields complete."""
    RECORD_MARK = 0     # ':' seen, a new record begins
    LENGTH = 1          # Payload length
    LOAD_OFFSET = 2     # 16-bit load offset
    RECORD_TYPE = 3     # Record type code
    DATA = 4            # One payload byte
    CHECKSUM = 5        # Trailing checksum, record complete


class Message(IntEnum):
    """
    Result of feeding one byte to the decoder.

    CONTINUE, END, INVALID_INPUT and CHECKSUM_ERROR are produced by the
    decoder. VERIFICATION_ERROR belongs to the data callback: the decoder
    never produces it, it only passes it through from a type 00 dispatch.
    """
    CONTINUE = 0
    END = 1
    INVALID_INPUT = 2
    CHECKSUM_ERROR = 3
    VERIFICATION_ERROR = 4

    @property
    def is_error(self) -> bool:
        return self not in (Message.CONTINUE, Message.END)

    @property
    def from_decoder(self) -> bool:
        """True for statuses the decoder itself can produce."""
        return self is not Message.VERIFICATION_ERROR


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class Record:
    """
    Fields of the record currently being decoded.

    A fresh Record is created every time a record mark is seen; fields are
    filled strictly left to right.

    Attributes:
        mark: Record mark byte (':' once validated)
        length: Declared payload length (0-255)
        load_offset: 16-bit load offset
        record_type: Record type code (may be outside RecordType)
        pending_byte: Payload byte being assembled from its two digits
        target_checksum: Checksum byte from the end of the record
    """
    mark: int = 0
    length: int = 0
    load_offset: int = 0
    record_type: int = 0
    pending_byte: int = 0
    target_checksum: int = 0

    def get_type_name(self) -> str:
        return RecordType.get_name(self.record_type)


@dataclass
class DecoderState:
    """
    State machine position, persisting across records of one stream.

    Attributes:
        phase: Current state
        remaining_digits: Hex digits still needed to complete the field
        record_byte_index: Index of the payload byte being processed
    """
    phase: LexerState = LexerState.WAIT_MARK
    remaining_digits: int = 0
    record_byte_index: int = 0


@dataclass(frozen=True)
class Token:
    """
    One decoded unit, delivered to the optional token callback.

    Attributes:
        token_type: What completed
        value: Decoded value of the field (the ':' byte for RECORD_MARK)
        record: Snapshot of the record at the time the token completed
        message: Outcome of the record, set on CHECKSUM tokens only
        address: Absolute address, set on DATA tokens of data records only
    """
    token_type: TokenType
    value: int
    record: Record = field(default_factory=Record)
    message: Optional[Message] = None
    address: Optional[int] = None
