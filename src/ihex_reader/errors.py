"""
ihex-reader Error Hierarchy
===========================

This module defines the exception hierarchy for the ihex-reader package.
All exceptions inherit from IHexError, allowing callers to catch every
package-related error with a single except clause if desired.

The streaming decoder itself never raises on bad input: it reports every
problem as a Message return value and keeps its state resumable. The
exceptions below are used by the layers built on top of it (the serial
receiver, the memory image and the command-line tool) when a status has
to become a hard failure.

Exception Hierarchy
-------------------
IHexError (base)
├── DecodeError (a decoder status turned into a failure)
│   ├── InvalidInputError - non-hex character where a digit was required
│   ├── ChecksumError - record checksum did not match
│   ├── VerificationError - data callback reported a verification mismatch
│   ├── MissingEndError - stream ended without an end-of-file record
│   └── TooManyErrors - error collector limit reached
├── ImageError (memory image handling)
└── CommsError (serial byte source)
    ├── ConnectionError - cannot open the serial port
    └── TimeoutError - no byte arrived within the idle timeout

Error messages follow this format:
    source:line:column: error: description
"""

from dataclasses import dataclass
from typing import Optional

from ihex_reader.decoder.records import Message


# =============================================================================
# Base Exception Class
# =============================================================================

class IHexError(Exception):
    """
    Base exception for all ihex-reader errors.

        try:
            image = decode_to_image(path)
        except IHexError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Stream Location Tracking
# =============================================================================

@dataclass(frozen=True)
class StreamLocation:
    """
    Position of a byte within a hex stream, for error reporting.

    Attributes:
        source: Name of the stream (file name, port name or "<input>")
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    source: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.source}:{self.line}:{self.column}"


class LocationTracker:
    """
    Tracks line and column while a stream is fed byte by byte.

    CR, LF and CRLF all end a line. The location of the byte most recently
    passed to advance() is available as `location`.
    """

    def __init__(self, source: str = "<input>"):
        self.source = source
        self.line = 1
        self.column = 0
        self._cr_location: Optional[StreamLocation] = None

    def advance(self, byte: int) -> StreamLocation:
        """Account for one byte and return its location."""
        if byte == 0x0A and self._cr_location is not None:
            # LF of a CRLF pair, the CR already ended the line
            cr = self._cr_location
            self._cr_location = None
            return StreamLocation(cr.source, cr.line, cr.column + 1)

        self._cr_location = None
        self.column += 1
        location = StreamLocation(self.source, self.line, self.column)

        if byte in (0x0A, 0x0D):
            if byte == 0x0D:
                self._cr_location = location
            self.line += 1
            self.column = 0

        return location


# =============================================================================
# Decode Exceptions
# =============================================================================

class DecodeError(IHexError):
    """
    A decoder status that the caller wants to treat as a failure.

    Attributes:
        message: The error description
        location: Where in the stream the error occurred (optional)
        status: The Message value the decoder returned (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[StreamLocation] = None,
        status: Optional[Message] = None,
    ):
        self.message = message
        self.location = location
        self.status = status
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.location:
            return f"{self.location}: error: {self.message}"
        return f"error: {self.message}"


class InvalidInputError(DecodeError):
    """
    A byte that is neither a hex digit nor CR/LF appeared inside a record.

    The decoder does not consume a digit slot for the offending byte, so a
    caller may keep feeding after this error.
    """

    def __init__(self, byte: int, location: Optional[StreamLocation] = None):
        self.byte = byte
        shown = chr(byte) if 0x20 <= byte < 0x7F else f"\\x{byte:02x}"
        super().__init__(
            f"invalid character '{shown}' where a hex digit was expected",
            location=location,
            status=Message.INVALID_INPUT,
        )


class ChecksumError(DecodeError):
    """Record checksum mismatch, reported at the record's last byte."""

    def __init__(self, location: Optional[StreamLocation] = None):
        super().__init__(
            "record checksum mismatch",
            location=location,
            status=Message.CHECKSUM_ERROR,
        )


class VerificationError(DecodeError):
    """
    The data callback refused a byte.

    Raised for Message.VERIFICATION_ERROR and for any other status a data
    callback passes back through the decoder.
    """

    def __init__(self, location: Optional[StreamLocation] = None, status=None):
        status = Message.VERIFICATION_ERROR if status is None else status
        super().__init__(
            f"data callback reported {_status_name(status)}",
            location=location,
            status=status,
        )


class MissingEndError(DecodeError):
    """The stream finished without an end-of-file (type 01) record."""

    def __init__(self, source: str = "<input>"):
        super().__init__(f"{source}: no end-of-file record")


class TooManyErrors(DecodeError):
    """Raised when the error collector reaches its limit."""

    def __init__(self, message: str = "Too many errors"):
        super().__init__(message)


def _status_name(status) -> str:
    if isinstance(status, Message):
        return status.name
    return repr(status)


def error_for_message(
    status,
    location: Optional[StreamLocation] = None,
    byte: int = 0,
) -> Optional[DecodeError]:
    """
    Map a decoder return value to the matching exception instance.

    Args:
        status: Value returned by Reader.feed()
        location: Location of the byte that produced the status
        byte: The byte that produced the status (for InvalidInputError)

    Returns:
        An exception instance, or None for CONTINUE and END.
    """
    if status in (Message.CONTINUE, Message.END):
        return None
    if status == Message.INVALID_INPUT:
        return InvalidInputError(byte, location)
    if status == Message.CHECKSUM_ERROR:
        return ChecksumError(location)
    return VerificationError(location, status)


# =============================================================================
# Memory Image Exceptions
# =============================================================================

class ImageError(IHexError):
    """
    Invalid memory image operation.

    Raised when:
    - Flattening an empty image without explicit bounds
    - Slice bounds are reversed
    - Fill byte is outside 0-255
    """
    pass


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(IHexError):
    """Base exception for serial byte source errors."""
    pass


class ConnectionError(CommsError):
    """
    Cannot open the serial port.

    Raised when:
    - Serial port not found
    - Permission denied
    - Port busy
    """
    pass


class TimeoutError(CommsError):
    """
    No byte arrived within the idle timeout.

    Note:
        This is distinct from the Python builtin TimeoutError. It inherits
        from CommsError for consistent error handling.
    """
    pass


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects decode errors for batch reporting.

    The decoder is resumable, so a checker can keep feeding after an error
    and report everything it found at the end.

    Example:
        collector = ErrorCollector(max_errors=100)

        try:
            for offset, status in reader.feed_all(data):
                error = error_for_message(status, location)
                if error:
                    collector.add(error)
        except TooManyErrors:
            pass

        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        self.errors: list[DecodeError] = []
        self.warnings: list[str] = []
        self.max_errors = max_errors

    def add(self, error: DecodeError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"Too many errors ({self.max_errors}), stopping")

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_count(self) -> int:
        return len(self.errors)

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = [str(error) for error in self.errors]

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  {warning}")

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)

    def clear(self) -> None:
        self.errors.clear()
        self.warnings.clear()
