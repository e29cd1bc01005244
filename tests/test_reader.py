"""
Reader and Record State Machine Tests
=====================================

Tests for the byte-at-a-time decoder as seen through the Reader facade.

Test Categories
---------------
1. Transition table: state order and digit counts
2. Data records: addresses, values and callback order
3. Address extension: segment and linear records across records
4. Statuses: END, CHECKSUM_ERROR, INVALID_INPUT, callback pass-through
5. Robustness: CR/LF noise, invalid characters, resynchronization
6. Tokens: the token stream delivered to observers
"""

import random

import pytest

from ihex_reader.config import ReaderConfig
from ihex_reader.decoder import (
    TRANSITIONS,
    LexerState,
    Message,
    Reader,
    Record,
    RecordType,
    TokenType,
    digits_for,
)


def feed(reader: Reader, data: bytes) -> list:
    """Feed every byte and return the per-byte statuses."""
    return [status for _, status in reader.feed_all(data)]


@pytest.fixture
def reader(recorder) -> Reader:
    reader = Reader()
    reader.init(recorder)
    reader.begin()
    return reader


# =============================================================================
# Transition Table Tests
# =============================================================================

class TestTransitionTable:
    """Tests for the TRANSITIONS table."""

    def test_field_order(self):
        assert TRANSITIONS[LexerState.WAIT_LENGTH].next_state == LexerState.WAIT_ADDRESS
        assert TRANSITIONS[LexerState.WAIT_ADDRESS].next_state == LexerState.WAIT_TYPE
        assert TRANSITIONS[LexerState.WAIT_DATA].next_state == LexerState.WAIT_CHECKSUM
        assert TRANSITIONS[LexerState.WAIT_CHECKSUM].next_state == LexerState.WAIT_MARK

    def test_type_successor_depends_on_record(self):
        assert TRANSITIONS[LexerState.WAIT_TYPE].next_state is None

    def test_digit_counts(self):
        record = Record(length=5)
        assert digits_for(LexerState.WAIT_MARK, record) == 0
        assert digits_for(LexerState.WAIT_LENGTH, record) == 2
        assert digits_for(LexerState.WAIT_ADDRESS, record) == 4
        assert digits_for(LexerState.WAIT_TYPE, record) == 2
        assert digits_for(LexerState.WAIT_DATA, record) == 10
        assert digits_for(LexerState.WAIT_CHECKSUM, record) == 2

    def test_record_attributes(self):
        attributes = {state: t.attribute for state, t in TRANSITIONS.items()}
        assert attributes[LexerState.WAIT_LENGTH] == "length"
        assert attributes[LexerState.WAIT_ADDRESS] == "load_offset"
        assert attributes[LexerState.WAIT_TYPE] == "record_type"
        assert attributes[LexerState.WAIT_CHECKSUM] == "target_checksum"


class TestStateProgression:
    """Tests for state changes while a record is fed."""

    def test_starts_waiting_for_mark(self):
        assert Reader().phase == LexerState.WAIT_MARK

    def test_walks_fields_in_order(self, reader):
        expected = {
            1: LexerState.WAIT_LENGTH,
            3: LexerState.WAIT_ADDRESS,
            7: LexerState.WAIT_TYPE,
            9: LexerState.WAIT_DATA,
            15: LexerState.WAIT_CHECKSUM,
            17: LexerState.WAIT_MARK,
        }
        for count, byte in enumerate(b":0300300002337A1E", start=1):
            reader.feed(byte)
            if count in expected:
                assert reader.phase == expected[count], f"after {count} bytes"

    def test_remaining_digits_count_down(self, reader):
        feed(reader, b":0")
        assert reader.state.remaining_digits == 1
        feed(reader, b"3")
        assert reader.state.remaining_digits == 4

    def test_zero_length_skips_payload(self, reader):
        feed(reader, b":00000001")
        assert reader.phase == LexerState.WAIT_CHECKSUM


# =============================================================================
# Data Record Tests
# =============================================================================

class TestDataRecords:
    """Tests for type 00 records."""

    def test_classic_record(self, reader, recorder):
        statuses = feed(reader, b":0300300002337A1E")
        assert recorder.calls == [(0x0030, 0x02), (0x0031, 0x33), (0x0032, 0x7A)]
        assert statuses[-1] == Message.CONTINUE
        assert all(s == Message.CONTINUE for s in statuses)

    def test_lowercase_digits(self, reader, recorder):
        statuses = feed(reader, b":0300300002337a1e")
        assert recorder.calls == [(0x0030, 0x02), (0x0031, 0x33), (0x0032, 0x7A)]
        assert statuses[-1] == Message.CONTINUE

    def test_callback_once_per_byte_in_order(self, reader, recorder, build_record):
        payload = bytes(range(0x40, 0x50))
        feed(reader, build_record(RecordType.DATA, 0x1000, payload))
        assert [a for a, _ in recorder.calls] == list(range(0x1000, 0x1010))
        assert bytes(v for _, v in recorder.calls) == payload

    def test_callback_on_completed_byte_only(self, reader, recorder):
        feed(reader, b":0300300002")
        assert recorder.calls == [(0x0030, 0x02)]
        feed(reader, b"3")
        assert len(recorder.calls) == 1

    def test_no_callback_bound(self, build_record):
        reader = Reader()
        reader.begin()
        statuses = feed(reader, b":0300300002337A1E")
        assert statuses[-1] == Message.CONTINUE

    def test_full_length_record(self, reader, recorder, build_record):
        payload = bytes(range(256))[:255]
        statuses = feed(reader, build_record(RecordType.DATA, 0x0000, payload))
        assert len(recorder.calls) == 255
        assert statuses[-1] == Message.CONTINUE

    def test_byte_index_resets_per_record(self, reader, recorder, build_record):
        feed(reader, build_record(RecordType.DATA, 0x0100, b"\x01\x02"))
        feed(reader, build_record(RecordType.DATA, 0x0200, b"\x03\x04"))
        assert recorder.calls == [
            (0x0100, 0x01), (0x0101, 0x02), (0x0200, 0x03), (0x0201, 0x04),
        ]

    @pytest.mark.parametrize("record_type", [
        RecordType.START_SEGMENT_ADDRESS,
        RecordType.START_LINEAR_ADDRESS,
        0x06,
        0xA5,
    ])
    def test_other_types_not_dispatched(self, reader, recorder, build_record, record_type):
        statuses = feed(reader, build_record(record_type, 0x0000, b"\x00\x00\xCD\x2A"))
        assert recorder.calls == []
        assert statuses[-1] == Message.CONTINUE

    def test_start_linear_address_record(self, reader, recorder):
        statuses = feed(reader, b":04000005000000CD2A")
        assert recorder.calls == []
        assert statuses[-1] == Message.CONTINUE
        assert reader.extension_base == 0


# =============================================================================
# Address Extension Tests
# =============================================================================

class TestAddressExtension:
    """Tests for extended segment and linear address records."""

    def test_extended_linear_address(self, reader, recorder, build_record):
        feed(reader, b":02000004FFFFFC\n")
        assert reader.extension_base == 0xFFFF0000
        feed(reader, build_record(RecordType.DATA, 0x0010, b"\xAB\xCD"))
        assert recorder.calls == [(0xFFFF0010, 0xAB), (0xFFFF0011, 0xCD)]

    def test_extended_segment_address(self, reader, recorder, build_record):
        statuses = feed(reader, b":020000020010EC\n")
        assert statuses[-2] == Message.CONTINUE
        assert reader.extension_base == 0x00000100
        feed(reader, build_record(RecordType.DATA, 0x0005, b"\x55"))
        assert recorder.calls == [(0x00000105, 0x55)]

    def test_base_persists_across_records(self, reader, recorder, build_record):
        feed(reader, build_record(RecordType.EXTENDED_LINEAR_ADDRESS, 0, b"\x08\x00"))
        feed(reader, build_record(RecordType.DATA, 0x0000, b"\x01"))
        feed(reader, build_record(RecordType.DATA, 0x8000, b"\x02"))
        assert recorder.calls == [(0x08000000, 0x01), (0x08008000, 0x02)]

    def test_new_extension_replaces_base(self, reader, recorder, build_record):
        feed(reader, build_record(RecordType.EXTENDED_LINEAR_ADDRESS, 0, b"\xFF\xFF"))
        feed(reader, build_record(RecordType.EXTENDED_SEGMENT_ADDRESS, 0, b"\x00\x10"))
        feed(reader, build_record(RecordType.DATA, 0x0000, b"\x01"))
        assert recorder.calls == [(0x00000100, 0x01)]

    def test_begin_clears_base(self, reader, recorder, build_record):
        feed(reader, build_record(RecordType.EXTENDED_LINEAR_ADDRESS, 0, b"\x00\x02"))
        reader.begin()
        feed(reader, build_record(RecordType.DATA, 0x0001, b"\x7F"))
        assert recorder.calls == [(0x00000001, 0x7F)]

    def test_address_wraps(self, reader, recorder, build_record):
        feed(reader, build_record(RecordType.EXTENDED_LINEAR_ADDRESS, 0, b"\xFF\xFF"))
        feed(reader, build_record(RecordType.DATA, 0xFFFF, b"\x01\x02"))
        assert recorder.calls == [(0xFFFFFFFF, 0x01), (0x00000000, 0x02)]

    def test_sample_image(self, reader, recorder, sample_hex):
        statuses = feed(reader, sample_hex)
        assert Message.END in statuses
        assert recorder.calls == [
            (0x00000030, 0x02), (0x00000031, 0x33), (0x00000032, 0x7A),
            (0x00010000, 0xDE), (0x00010001, 0xAD),
            (0x00010002, 0xBE), (0x00010003, 0xEF),
            (0x00010100, 0x01), (0x00010101, 0x02),
        ]


# =============================================================================
# Status Tests
# =============================================================================

class TestStatuses:
    """Tests for END, CHECKSUM_ERROR and callback statuses."""

    def test_end_of_file(self, reader):
        statuses = feed(reader, b":00000001FF")
        assert statuses[-1] == Message.END
        assert all(s == Message.CONTINUE for s in statuses[:-1])

    def test_end_of_file_ignores_checksum_by_default(self, reader):
        assert feed(reader, b":00000001AA")[-1] == Message.END

    def test_end_of_file_checksum_validated_when_configured(self):
        reader = Reader(config=ReaderConfig(validate_eof_checksum=True))
        reader.begin()
        assert feed(reader, b":00000001AA")[-1] == Message.CHECKSUM_ERROR
        assert feed(reader, b":00000001FF")[-1] == Message.END

    def test_input_accepted_after_end(self, reader, recorder):
        feed(reader, b":00000001FF\n")
        statuses = feed(reader, b":0300300002337A1E")
        assert statuses[-1] == Message.CONTINUE
        assert len(recorder.calls) == 3

    def test_checksum_error(self, reader):
        statuses = feed(reader, b":0300300002337A1F")
        assert statuses[-1] == Message.CHECKSUM_ERROR
        assert all(s == Message.CONTINUE for s in statuses[:-1])

    def test_ready_after_checksum_error(self, reader, recorder):
        feed(reader, b":0300300002337A1F\n")
        assert reader.phase == LexerState.WAIT_MARK
        statuses = feed(reader, b":0300300002337A1E")
        assert statuses[-1] == Message.CONTINUE

    def test_callback_status_passed_through(self, reader, recorder):
        recorder.status = Message.VERIFICATION_ERROR
        statuses = feed(reader, b":0300300002337A1E")
        # Bytes completing each payload byte: positions 10, 12 and 14
        assert statuses[10] == Message.VERIFICATION_ERROR
        assert statuses[12] == Message.VERIFICATION_ERROR
        assert statuses[14] == Message.VERIFICATION_ERROR
        assert statuses[-1] == Message.CONTINUE

    def test_custom_callback_status_verbatim(self, reader, recorder):
        sentinel = object()
        recorder.status = sentinel
        statuses = feed(reader, b":0100000042BD")
        assert statuses[10] is sentinel

    def test_callback_returning_none_is_continue(self, reader, recorder):
        recorder.status = None
        statuses = feed(reader, b":0300300002337A1E")
        assert all(s == Message.CONTINUE for s in statuses)

    def test_verification_error_not_from_decoder(self):
        assert not Message.VERIFICATION_ERROR.from_decoder
        assert Message.CHECKSUM_ERROR.from_decoder
        assert Message.CHECKSUM_ERROR.is_error
        assert not Message.END.is_error


# =============================================================================
# Robustness Tests
# =============================================================================

class TestInputHandling:
    """Tests for CR/LF, noise and invalid characters."""

    def test_crlf_anywhere(self, reader, recorder):
        statuses = feed(reader, b"\r\n:03\r\n0030\n00\r02337A\n1E\r\n")
        assert recorder.calls == [(0x0030, 0x02), (0x0031, 0x33), (0x0032, 0x7A)]
        assert Message.CHECKSUM_ERROR not in statuses
        assert all(s == Message.CONTINUE for s in statuses)

    def test_noise_before_mark_ignored(self, reader, recorder):
        statuses = feed(reader, b"garbage 123 \t\n\n:0300300002337A1E")
        assert all(s == Message.CONTINUE for s in statuses)
        assert len(recorder.calls) == 3

    @pytest.mark.parametrize("char", [b"G", b" ", b"x", b"\x00", b"\xff", b":", b"-"])
    def test_invalid_character_in_record(self, reader, char):
        feed(reader, b":03003")
        assert reader.feed(char[0]) == Message.INVALID_INPUT

    @pytest.mark.parametrize("prefix", [
        b":",                   # WAIT_LENGTH
        b":03",                 # WAIT_ADDRESS
        b":030030",             # WAIT_ADDRESS (mid-field)
        b":03003000",           # WAIT_DATA
        b":0300300002337A",     # WAIT_CHECKSUM
    ])
    def test_invalid_character_in_every_field(self, reader, prefix):
        feed(reader, prefix)
        assert reader.feed(ord("Z")) == Message.INVALID_INPUT

    def test_invalid_character_does_not_consume_digit(self, reader, recorder):
        """Decoding resumes in the right nibble after an invalid byte."""
        statuses = feed(reader, b":03003Z00002?337A1!E")
        assert statuses.count(Message.INVALID_INPUT) == 3
        assert recorder.calls == [(0x0030, 0x02), (0x0031, 0x33), (0x0032, 0x7A)]
        assert statuses[-1] == Message.CONTINUE

    def test_invalid_character_leaves_state(self, reader):
        feed(reader, b":030")
        before = (reader.phase, reader.state.remaining_digits)
        reader.feed(ord("?"))
        assert (reader.phase, reader.state.remaining_digits) == before


class TestChecksumRoundTrip:
    """Encoded records decode cleanly; single corruptions are detected."""

    @pytest.mark.parametrize("offset,payload", [
        (0x0000, b""),
        (0x0000, b"\x00"),
        (0xFFFF, b"\xFF"),
        (0x1234, bytes(range(16))),
        (0xABCD, b"\x80\x7F\x01\xFE"),
    ])
    def test_valid_records_continue(self, reader, build_record, offset, payload):
        statuses = feed(reader, build_record(RecordType.DATA, offset, payload))
        assert all(s == Message.CONTINUE for s in statuses)

    def test_random_records_continue(self, reader, build_record):
        rng = random.Random(0x1E)
        for _ in range(50):
            payload = bytes(rng.randrange(256) for _ in range(rng.randrange(33)))
            line = build_record(RecordType.DATA, rng.randrange(0x10000), payload)
            statuses = feed(reader, line + b"\n")
            assert all(s == Message.CONTINUE for s in statuses), line

    def test_single_digit_corruption_detected(self, build_record, recorder):
        line = build_record(RecordType.DATA, 0x2040, b"\x10\x20\x30\x40")
        trailer = b"\n:00000001FF\n"

        for position in range(1, len(line)):
            digit = int(chr(line[position]), 16)
            corrupted = bytearray(line)
            corrupted[position] = ord(f"{(digit + 1) % 16:X}")

            reader = Reader(recorder)
            reader.begin()
            statuses = feed(reader, bytes(corrupted) + trailer)
            line_statuses = statuses[:len(corrupted)]

            assert (any(s != Message.CONTINUE for s in line_statuses)
                    or Message.INVALID_INPUT in statuses), (
                f"corruption at {position} not detected: {bytes(corrupted)!r}"
            )


# =============================================================================
# Token Stream Tests
# =============================================================================

class TestTokens:
    """Tests for the token callback."""

    def test_token_sequence(self):
        tokens = []
        reader = Reader(token_callback=tokens.append)
        reader.begin()
        feed(reader, b":0300300002337A1E")

        assert [t.token_type for t in tokens] == [
            TokenType.RECORD_MARK,
            TokenType.LENGTH,
            TokenType.LOAD_OFFSET,
            TokenType.RECORD_TYPE,
            TokenType.DATA,
            TokenType.DATA,
            TokenType.DATA,
            TokenType.CHECKSUM,
        ]
        assert tokens[0].value == ord(":")
        assert tokens[1].value == 0x03
        assert tokens[2].value == 0x0030
        assert tokens[3].value == 0x00
        assert [t.address for t in tokens[4:7]] == [0x30, 0x31, 0x32]
        assert tokens[-1].value == 0x1E
        assert tokens[-1].message == Message.CONTINUE

    def test_checksum_token_carries_record(self):
        tokens = []
        reader = Reader(token_callback=tokens.append)
        reader.begin()
        feed(reader, b":02000004FFFFFC")

        record = tokens[-1].record
        assert record.length == 2
        assert record.record_type == RecordType.EXTENDED_LINEAR_ADDRESS
        assert record.target_checksum == 0xFC
        assert tokens[-1].message == Message.CONTINUE
        # Extension payload bytes have no absolute address
        assert all(t.address is None for t in tokens)

    def test_snapshots_are_independent(self):
        tokens = []
        reader = Reader(token_callback=tokens.append)
        reader.begin()
        feed(reader, b":0300300002337A1E:00000001FF")
        checksum_tokens = [t for t in tokens if t.token_type == TokenType.CHECKSUM]
        assert checksum_tokens[0].record.record_type == RecordType.DATA
        assert checksum_tokens[1].record.record_type == RecordType.END_OF_FILE
        assert checksum_tokens[1].message == Message.END


# =============================================================================
# Facade Tests
# =============================================================================

class TestReaderFacade:
    """Tests for init/begin/feed semantics."""

    def test_init_does_not_reset_state(self, reader, recorder):
        feed(reader, b":0300300002")
        other = []
        reader.init(lambda address, value: other.append((address, value)))
        assert reader.phase == LexerState.WAIT_DATA
        feed(reader, b"337A1E")
        assert recorder.calls == [(0x30, 0x02)]
        assert other == [(0x31, 0x33), (0x32, 0x7A)]

    def test_begin_abandons_partial_record(self, reader, recorder):
        feed(reader, b":03003000")
        reader.begin()
        assert reader.phase == LexerState.WAIT_MARK
        statuses = feed(reader, b":0300300002337A1E")
        assert statuses[-1] == Message.CONTINUE

    def test_feed_all_yields_offsets(self, reader):
        results = list(reader.feed_all(b":00000001FF"))
        assert [offset for offset, _ in results] == list(range(11))
        assert results[-1] == (10, Message.END)

    def test_independent_readers(self, build_record):
        first, second = [], []
        reader_a = Reader(lambda a, v: first.append(a))
        reader_b = Reader(lambda a, v: second.append(a))
        reader_a.begin()
        reader_b.begin()
        feed(reader_a, build_record(RecordType.EXTENDED_LINEAR_ADDRESS, 0, b"\x00\x01"))
        feed(reader_a, build_record(RecordType.DATA, 0, b"\x00"))
        feed(reader_b, build_record(RecordType.DATA, 0, b"\x00"))
        assert first == [0x10000]
        assert second == [0]
