"""
Memory Image Collaborator
=========================

A sparse memory image that receives decoded bytes from a Reader. Its
write() method has the data callback signature, so an image can be bound
directly:

    >>> from ihex_reader.decoder import Reader
    >>> image = MemoryImage()
    >>> reader = Reader(image.write)

Verify Mode
-----------
When constructed with a reference image, write() compares every byte with
the reference instead of only storing it, and returns
Message.VERIFICATION_ERROR on a mismatch. That status travels back through
Reader.feed() as the result of the byte that caused it, which is how a
firmware writer reports a failed read-back.

Overlapping records simply overwrite earlier bytes.
"""

from dataclasses import dataclass
from typing import Iterator, Optional
import logging

from ihex_reader.decoder.records import Message
from ihex_reader.errors import ImageError

logger = logging.getLogger(__name__)


@dataclass
class MemorySegment:
    """A contiguous run of bytes starting at `address`."""
    address: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_address(self) -> int:
        """Address one past the last byte."""
        return self.address + self.size

    def __str__(self) -> str:
        return (f"0x{self.address:08X}-0x{self.end_address - 1:08X} "
                f"({self.size} bytes)")


@dataclass(frozen=True)
class Mismatch:
    """A byte that did not match the reference image."""
    address: int
    expected: Optional[int]
    actual: int


class MemoryImage:
    """
    Sparse address -> byte store.

    Args:
        reference: Optional image to verify written bytes against

    Attributes:
        mismatches: Bytes that failed verification, in write order
    """

    def __init__(self, reference: Optional["MemoryImage"] = None):
        self._data: dict[int, int] = {}
        self.reference = reference
        self.mismatches: list[Mismatch] = []

    @classmethod
    def from_bytes(cls, data: bytes, base: int = 0) -> "MemoryImage":
        """Build an image holding `data` at consecutive addresses from `base`."""
        image = cls()
        for offset, value in enumerate(data):
            image._data[base + offset] = value
        return image

    # -------------------------------------------------------------------------
    # Data Callback
    # -------------------------------------------------------------------------

    def write(self, address: int, value: int) -> Message:
        """
        Store one decoded byte.

        Returns:
            CONTINUE, or VERIFICATION_ERROR when a reference image is set
            and does not hold `value` at `address`.
        """
        self._data[address] = value

        if self.reference is None:
            return Message.CONTINUE

        expected = self.reference.get(address)
        if expected != value:
            self.mismatches.append(Mismatch(address, expected, value))
            if expected is None:
                logger.debug(f"Verify: 0x{address:08X} outside reference image")
            else:
                logger.debug(
                    f"Verify: 0x{address:08X} expected 0x{expected:02X}, "
                    f"got 0x{value:02X}"
                )
            return Message.VERIFICATION_ERROR

        return Message.CONTINUE

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, address: int, default: Optional[int] = None) -> Optional[int]:
        return self._data.get(address, default)

    def __getitem__(self, address: int) -> int:
        return self._data[address]

    def __contains__(self, address: int) -> bool:
        return address in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[tuple[int, int]]:
        """Iterate (address, byte) pairs in address order."""
        for address in sorted(self._data):
            yield address, self._data[address]

    @property
    def start_address(self) -> Optional[int]:
        """Lowest address written, or None for an empty image."""
        return min(self._data) if self._data else None

    @property
    def end_address(self) -> Optional[int]:
        """Address one past the highest address written."""
        return max(self._data) + 1 if self._data else None

    def segments(self) -> list[MemorySegment]:
        """Split the image into contiguous segments, in address order."""
        segments: list[MemorySegment] = []
        run_start: Optional[int] = None
        run = bytearray()
        previous = None

        for address, value in self:
            if previous is not None and address != previous + 1:
                segments.append(MemorySegment(run_start, bytes(run)))
                run = bytearray()
                run_start = None
            if run_start is None:
                run_start = address
            run.append(value)
            previous = address

        if run_start is not None:
            segments.append(MemorySegment(run_start, bytes(run)))

        return segments

    def to_bytes(
        self,
        start: Optional[int] = None,
        end: Optional[int] = None,
        fill: int = 0xFF,
    ) -> bytes:
        """
        Flatten the image into a contiguous block.

        Args:
            start: First address (default: lowest address written)
            end: Address one past the last (default: one past the highest)
            fill: Byte written to addresses with no data

        Raises:
            ImageError: If the image is empty and no bounds are given, if
                start > end, or if fill is not a byte value
        """
        if not 0 <= fill <= 0xFF:
            raise ImageError(f"Fill byte out of range: {fill}")

        if start is None:
            start = self.start_address
        if end is None:
            end = self.end_address
        if start is None or end is None:
            raise ImageError("Image is empty; give explicit start and end addresses")
        if start > end:
            raise ImageError(f"Start 0x{start:08X} is above end 0x{end:08X}")

        block = bytearray([fill]) * (end - start)
        for address, value in self._data.items():
            if start <= address < end:
                block[address - start] = value
        return bytes(block)
