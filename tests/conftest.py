"""
Shared fixtures for the ihex-reader test suite.
"""

import pytest

from ihex_reader.decoder import Message, calculate_record_checksum


def make_record(record_type: int, load_offset: int, payload: bytes = b"") -> bytes:
    """Build one Intel HEX record line (without line terminator)."""
    body = bytes([len(payload), (load_offset >> 8) & 0xFF, load_offset & 0xFF,
                  record_type]) + payload
    checksum = calculate_record_checksum(body)
    return b":" + (body + bytes([checksum])).hex().upper().encode("ascii")


class DataRecorder:
    """Data callback that records every (address, value) it receives."""

    def __init__(self, status=Message.CONTINUE):
        self.calls: list[tuple[int, int]] = []
        self.status = status

    def __call__(self, address: int, value: int):
        self.calls.append((address, value))
        return self.status


@pytest.fixture
def build_record():
    """Factory for record lines: build_record(type, offset, payload)."""
    return make_record


@pytest.fixture
def recorder() -> DataRecorder:
    return DataRecorder()


@pytest.fixture
def sample_hex() -> bytes:
    """
    A small image exercising every addressing mode.

    - Data at 0x0030 (no extension)
    - Extended linear base 0x00010000, data at 0x00010000
    - Extended segment base 0x1000 * 16, data at 0x00010100
    - End of file
    """
    return b"\r\n".join([
        b":0300300002337A1E",
        make_record(0x04, 0x0000, bytes([0x00, 0x01])),
        make_record(0x00, 0x0000, bytes([0xDE, 0xAD, 0xBE, 0xEF])),
        make_record(0x02, 0x0000, bytes([0x10, 0x00])),
        make_record(0x00, 0x0100, bytes([0x01, 0x02])),
        b":00000001FF",
        b"",
    ])
