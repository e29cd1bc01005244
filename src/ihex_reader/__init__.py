"""
ihex-reader - Streaming Intel HEX Decoder
=========================================

This package decodes Intel HEX firmware images one character at a time,
the way a bootloader consumes a hex file arriving over a serial line. No
line or file is ever buffered: each byte fed to the decoder advances a
small state machine and returns a status.

Main Components
---------------
- **decoder**: the byte-at-a-time decoder
    Reader facade, record state machine, checksum and address extension

- **image**: memory image collaborator
    Collects decoded bytes, optionally verifying them against a reference

- **comms**: serial byte source
    Feeds a Reader from a serial port until the end-of-file record

- **cli**: the `ihexread` command-line tool

Quick Start
-----------
Decode a stream into a memory image:
    >>> from ihex_reader import Reader, MemoryImage
    >>> image = MemoryImage()
    >>> reader = Reader(image.write)
    >>> reader.begin()
    >>> for byte in b":0300300002337A1E\\n:00000001FF\\n":
    ...     status = reader.feed(byte)
    >>> status
    <Message.END: 1>
    >>> image.to_bytes().hex()
    '02337a'

Or use the command-line tool:
    $ ihexread check firmware.hex
    $ ihexread dump firmware.hex -o firmware.bin
    $ ihexread listen --port /dev/ttyUSB0 -o received.bin
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from ihex_reader.decoder import (
    Reader,
    RecordLexer,
    Message,
    RecordType,
    LexerState,
    TokenType,
    Record,
    DecoderState,
    Token,
    ChecksumTracker,
    AddressExtensionTracker,
    calculate_record_checksum,
)
from ihex_reader.config import ReaderConfig
from ihex_reader.errors import (
    IHexError,
    DecodeError,
    InvalidInputError,
    ChecksumError,
    VerificationError,
    MissingEndError,
    ImageError,
    CommsError,
    StreamLocation,
    error_for_message,
)
from ihex_reader.image import MemoryImage, MemorySegment, Mismatch

__all__ = [
    "__version__",
    # Decoder
    "Reader",
    "RecordLexer",
    "Message",
    "RecordType",
    "LexerState",
    "TokenType",
    "Record",
    "DecoderState",
    "Token",
    "ChecksumTracker",
    "AddressExtensionTracker",
    "calculate_record_checksum",
    # Configuration
    "ReaderConfig",
    # Exception hierarchy
    "IHexError",
    "DecodeError",
    "InvalidInputError",
    "ChecksumError",
    "VerificationError",
    "MissingEndError",
    "ImageError",
    "CommsError",
    "StreamLocation",
    "error_for_message",
    # Memory image
    "MemoryImage",
    "MemorySegment",
    "Mismatch",
]
