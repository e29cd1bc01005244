"""
Intel HEX Record State Machine
==============================

This module implements the byte-at-a-time record decoder. It never buffers
a line: every call to put() advances the machine by at most one digit and
returns a Message describing the outcome of that byte.

State Machine
-------------
States follow the record layout in a fixed cycle:

    WAIT_MARK -> WAIT_LENGTH -> WAIT_ADDRESS -> WAIT_TYPE
              -> [WAIT_DATA] -> WAIT_CHECKSUM -> WAIT_MARK

WAIT_DATA is skipped for records with a zero length. Each field state
expects a fixed number of hex digits (the payload state expects
length * 2); when the last digit arrives the field is complete, a token is
emitted and the machine moves on.

The transitions are described by the TRANSITIONS table so they can be
inspected and tested on their own.

Input Rules
-----------
- CR and LF are ignored in every state.
- WAIT_MARK ignores everything except ':'.
- In the other states a byte that is not a hex digit returns
  INVALID_INPUT. The digit slot is not consumed, so decoding resumes
  correctly when the next valid digit arrives.

Token Handling
--------------
Completed fields are processed as tokens:

    RECORD_MARK   reset checksum and payload index
    LENGTH        accumulate into checksum
    LOAD_OFFSET   accumulate high and low byte into checksum
    RECORD_TYPE   accumulate; start address extension for types 02/04
    DATA          accumulate; dispatch by record type
    CHECKSUM      compare; report END / CHECKSUM_ERROR / CONTINUE
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Final, Optional
import logging

from ihex_reader.decoder.address import AddressExtensionTracker
from ihex_reader.decoder.checksum import ChecksumTracker
from ihex_reader.decoder.fields import (
    ADDRESS_DIGITS,
    CHECKSUM_DIGITS,
    DIGITS_PER_BYTE,
    LENGTH_DIGITS,
    RECORD_MARK,
    TYPE_DIGITS,
    char_to_nibble,
    insert_digit,
    is_line_terminator,
)
from ihex_reader.decoder.records import (
    DecoderState,
    LexerState,
    Message,
    Record,
    RecordType,
    Token,
    TokenType,
)

logger = logging.getLogger(__name__)

# Data callback: (absolute address, byte) -> status (None means CONTINUE)
DataCallback = Callable[[int, int], Any]
TokenCallback = Callable[[Token], None]


# =============================================================================
# Transition Table
# =============================================================================

@dataclass(frozen=True)
class Transition:
    """
    How one field state is filled and left.

    Attributes:
        digits: Hex digits the field needs (None: depends on record length)
        attribute: Record attribute the digits are accumulated into
        token_type: Token emitted when the field completes
        next_state: State entered when the field completes (None: decided
            by the record, see RecordLexer._next_after)
    """
    digits: Optional[int]
    attribute: str
    token_type: TokenType
    next_state: Optional[LexerState]


TRANSITIONS: Final[dict[LexerState, Transition]] = {
    LexerState.WAIT_LENGTH: Transition(
        LENGTH_DIGITS, "length", TokenType.LENGTH, LexerState.WAIT_ADDRESS),
    LexerState.WAIT_ADDRESS: Transition(
        ADDRESS_DIGITS, "load_offset", TokenType.LOAD_OFFSET, LexerState.WAIT_TYPE),
    LexerState.WAIT_TYPE: Transition(
        TYPE_DIGITS, "record_type", TokenType.RECORD_TYPE, None),
    LexerState.WAIT_DATA: Transition(
        None, "pending_byte", TokenType.DATA, LexerState.WAIT_CHECKSUM),
    LexerState.WAIT_CHECKSUM: Transition(
        CHECKSUM_DIGITS, "target_checksum", TokenType.CHECKSUM, LexerState.WAIT_MARK),
}


def digits_for(state: LexerState, record: Record) -> int:
    """Number of hex digits the given state expects for this record."""
    if state == LexerState.WAIT_MARK:
        return 0
    transition = TRANSITIONS[state]
    if transition.digits is None:
        return record.length * DIGITS_PER_BYTE
    return transition.digits


# =============================================================================
# Record Lexer
# =============================================================================

class RecordLexer:
    """
    Intel HEX record state machine.

    Owns the per-stream decoder state, the record being decoded, the
    running checksum and the address extension base.

    Args:
        data_callback: Called with (address, byte) for every payload byte
            of a data record. Its return value becomes the result of the
            put() call that completed the byte.
        token_callback: Optional observer called with every Token.
        validate_eof_checksum: Compare the checksum of end-of-file records
            too, instead of reporting END unconditionally.
    """

    def __init__(
        self,
        data_callback: Optional[DataCallback] = None,
        token_callback: Optional[TokenCallback] = None,
        validate_eof_checksum: bool = False,
    ):
        self.data_callback = data_callback
        self.token_callback = token_callback
        self.validate_eof_checksum = validate_eof_checksum

        self.state = DecoderState()
        self.record = Record()
        self.checksum = ChecksumTracker()
        self.extension = AddressExtensionTracker()

    def reset(self) -> None:
        """Return to WAIT_MARK and clear the extension base."""
        self.state = DecoderState()
        self.record = Record()
        self.checksum.reset()
        self.extension.reset()

    # -------------------------------------------------------------------------
    # Byte Input
    # -------------------------------------------------------------------------

    def put(self, byte: int) -> Any:
        """
        Advance the machine by one input byte.

        Returns:
            A Message, or the data callback's own status for the byte that
            completed a data record payload byte.
        """
        if is_line_terminator(byte):
            return Message.CONTINUE

        if self.state.phase == LexerState.WAIT_MARK:
            if byte != RECORD_MARK:
                return Message.CONTINUE
            return self._start_record(byte)

        nibble = char_to_nibble(byte)
        if nibble is None:
            return Message.INVALID_INPUT

        self.state.remaining_digits -= 1
        if self.state.phase == LexerState.WAIT_DATA:
            return self._put_payload_digit(nibble)
        return self._put_field_digit(nibble)

    def _start_record(self, byte: int) -> Any:
        self.record = Record(mark=byte)
        message = self._handle_token(TokenType.RECORD_MARK, byte)
        self._set_next_state(LexerState.WAIT_LENGTH)
        return message

    def _put_field_digit(self, nibble: int) -> Any:
        transition = TRANSITIONS[self.state.phase]
        remaining = self.state.remaining_digits

        value = getattr(self.record, transition.attribute)
        value = insert_digit(value, nibble, remaining)
        setattr(self.record, transition.attribute, value)

        if remaining > 0:
            return Message.CONTINUE

        message = self._handle_token(transition.token_type, value)
        self._set_next_state(self._next_after(transition))
        return message

    def _put_payload_digit(self, nibble: int) -> Any:
        remaining = self.state.remaining_digits
        digit_pos = remaining % DIGITS_PER_BYTE
        self.record.pending_byte = insert_digit(
            self.record.pending_byte, nibble, digit_pos)

        message = Message.CONTINUE
        if digit_pos == 0:
            message = self._handle_token(TokenType.DATA, self.record.pending_byte)
            self.record.pending_byte = 0

        if remaining == 0:
            self._set_next_state(LexerState.WAIT_CHECKSUM)
        return message

    def _next_after(self, transition: Transition) -> LexerState:
        if transition.next_state is not None:
            return transition.next_state
        # Record type completed
        if self.record.length > 0:
            return LexerState.WAIT_DATA
        return LexerState.WAIT_CHECKSUM

    def _set_next_state(self, next_state: LexerState) -> None:
        self.state.phase = next_state
        self.state.remaining_digits = digits_for(next_state, self.record)

    # -------------------------------------------------------------------------
    # Token Handling
    # -------------------------------------------------------------------------

    def _handle_token(self, token_type: TokenType, value: int) -> Any:
        message: Any = Message.CONTINUE
        address = None

        if token_type == TokenType.RECORD_MARK:
            self.checksum.reset()
            self.state.record_byte_index = 0

        elif token_type == TokenType.LENGTH:
            self.checksum.accumulate(value)

        elif token_type == TokenType.LOAD_OFFSET:
            self.checksum.accumulate_word(value)

        elif token_type == TokenType.RECORD_TYPE:
            self.checksum.accumulate(value)
            if RecordType.is_extension(value):
                self.extension.start(value)

        elif token_type == TokenType.DATA:
            message, address = self._dispatch_payload_byte(value)

        elif token_type == TokenType.CHECKSUM:
            message = self._complete_record(value)

        if self.token_callback is not None:
            self.token_callback(Token(
                token_type=token_type,
                value=value,
                record=replace(self.record),
                message=message if token_type == TokenType.CHECKSUM else None,
                address=address,
            ))

        return message

    def _dispatch_payload_byte(self, value: int) -> tuple[Any, Optional[int]]:
        self.checksum.accumulate(value)
        message: Any = Message.CONTINUE
        address = None
        record_type = self.record.record_type

        if record_type == RecordType.DATA:
            address = self.extension.absolute_address(
                self.record.load_offset, self.state.record_byte_index)
            if self.data_callback is not None:
                result = self.data_callback(address, value)
                if result is not None:
                    message = result
        elif RecordType.is_extension(record_type):
            self.extension.feed(value)

        self.state.record_byte_index += 1
        return message, address

    def _complete_record(self, target: int) -> Message:
        valid = self.checksum.matches(target)
        record = self.record

        if record.record_type == RecordType.END_OF_FILE:
            if valid:
                logger.debug("End-of-file record")
                return Message.END
            if self.validate_eof_checksum:
                logger.warning(
                    f"End-of-file record checksum mismatch: "
                    f"expected 0x{self.checksum.finalize():02X}, got 0x{target:02X}"
                )
                return Message.CHECKSUM_ERROR
            logger.warning(
                f"End-of-file record has checksum 0x{target:02X} "
                f"(expected 0x{self.checksum.finalize():02X}), accepting it"
            )
            return Message.END

        if not valid:
            logger.warning(
                f"Checksum mismatch in {record.get_type_name()} record at "
                f"offset 0x{record.load_offset:04X}: expected "
                f"0x{self.checksum.finalize():02X}, got 0x{target:02X}"
            )
            return Message.CHECKSUM_ERROR

        logger.debug(
            f"{record.get_type_name()} record: {record.length} bytes "
            f"at offset 0x{record.load_offset:04X}"
        )
        return Message.CONTINUE
