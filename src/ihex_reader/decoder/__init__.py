"""
Streaming Intel HEX Decoder
===========================

This package decodes Intel HEX text one byte at a time into
(absolute address, byte) pairs, without buffering lines.

Components
----------
- **fields**: hex digit to nibble conversion and nibble insertion
- **checksum**: running record checksum
- **address**: extended segment / linear address base tracking
- **lexer**: the record state machine
- **reader**: the Reader facade (init, begin, feed)

Quick Start
-----------
    >>> from ihex_reader.decoder import Reader, Message
    >>> reader = Reader(lambda address, value: Message.CONTINUE)
    >>> reader.begin()
    >>> [reader.feed(b) for b in b":00000001FF"][-1]
    <Message.END: 1>
"""

from ihex_reader.decoder.records import (
    RecordType,
    LexerState,
    TokenType,
    Message,
    Record,
    DecoderState,
    Token,
)

from ihex_reader.decoder.fields import (
    insert_digit,
    char_to_nibble,
    is_line_terminator,
    LENGTH_DIGITS,
    ADDRESS_DIGITS,
    TYPE_DIGITS,
    CHECKSUM_DIGITS,
)

from ihex_reader.decoder.checksum import (
    ChecksumTracker,
    calculate_record_checksum,
)

from ihex_reader.decoder.address import (
    AddressExtensionTracker,
    ADDRESS_MASK,
)

from ihex_reader.decoder.lexer import (
    RecordLexer,
    Transition,
    TRANSITIONS,
    digits_for,
    DataCallback,
    TokenCallback,
)

from ihex_reader.decoder.reader import Reader

__all__ = [
    # Records
    "RecordType",
    "LexerState",
    "TokenType",
    "Message",
    "Record",
    "DecoderState",
    "Token",
    # Fields
    "insert_digit",
    "char_to_nibble",
    "is_line_terminator",
    "LENGTH_DIGITS",
    "ADDRESS_DIGITS",
    "TYPE_DIGITS",
    "CHECKSUM_DIGITS",
    # Checksum
    "ChecksumTracker",
    "calculate_record_checksum",
    # Address extension
    "AddressExtensionTracker",
    "ADDRESS_MASK",
    # State machine
    "RecordLexer",
    "Transition",
    "TRANSITIONS",
    "digits_for",
    "DataCallback",
    "TokenCallback",
    # Facade
    "Reader",
]
