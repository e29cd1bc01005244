"""
Hex Digit Field Accumulation
============================

Helpers that turn ASCII hex digits into nibbles and place them into
fixed-width integer fields as the digits arrive.

The state machine counts digit positions down from (width - 1) to 0, so the
first digit of a field lands in its most significant nibble:

    >>> value = 0
    >>> value = insert_digit(value, 0x1, 3)
    >>> value = insert_digit(value, 0x2, 2)
    >>> value = insert_digit(value, 0x3, 1)
    >>> value = insert_digit(value, 0x4, 0)
    >>> hex(value)
    '0x1234'
"""

from typing import Final, Optional

# Field widths in hex digits
LENGTH_DIGITS: Final[int] = 2
ADDRESS_DIGITS: Final[int] = 4
TYPE_DIGITS: Final[int] = 2
CHECKSUM_DIGITS: Final[int] = 2
DIGITS_PER_BYTE: Final[int] = 2

RECORD_MARK: Final[int] = ord(":")
CR: Final[int] = 0x0D
LF: Final[int] = 0x0A


def insert_digit(field: int, nibble: int, digit_pos: int) -> int:
    """
    Write a nibble into one digit slot of a field.

    Args:
        field: Current field value
        nibble: Value 0-15 to write
        digit_pos: Nibble slot, 0 = least significant

    Returns:
        The field with slot `digit_pos` replaced and all other nibbles kept.
    """
    shift = digit_pos * 4
    mask = 0xF << shift
    return (field & ~mask) | ((nibble & 0xF) << shift)


def char_to_nibble(byte: int) -> Optional[int]:
    """
    Convert an ASCII hex digit to its value.

    Returns:
        0-15 for '0'-'9', 'A'-'F' and 'a'-'f'; None for anything else.
    """
    if 0x30 <= byte <= 0x39:    # '0'-'9'
        return byte - 0x30
    if 0x41 <= byte <= 0x46:    # 'A'-'F'
        return byte - 0x41 + 10
    if 0x61 <= byte <= 0x66:    # 'a'-'f'
        return byte - 0x61 + 10
    return None


def is_line_terminator(byte: int) -> bool:
    return byte == CR or byte == LF
