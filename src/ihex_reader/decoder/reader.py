"""
Intel HEX Stream Reader
=======================

The Reader is the public entry point of the decoder. It owns one record
state machine and the data callback, and is fed one byte at a time.

Usage
-----
    >>> from ihex_reader.decoder import Reader, Message
    >>> received = []
    >>> def on_data(address, value):
    ...     received.append((address, value))
    ...     return Message.CONTINUE
    >>> reader = Reader()
    >>> reader.init(on_data)
    >>> reader.begin()
    >>> for byte in b":0300300002337A1E\\r\\n":
    ...     status = reader.feed(byte)
    >>> received
    [(48, 2), (49, 51), (50, 122)]

Statuses
--------
feed() returns, for each byte:
- CONTINUE: nothing to report
- END: an end-of-file record was completed
- INVALID_INPUT: a non-hex character inside a record
- CHECKSUM_ERROR: the record just completed failed its checksum
- anything the data callback returned for the byte (passed through as is)

The reader never raises on input and stays usable after every error.
"""

from typing import Any, Iterable, Iterator, Optional

from ihex_reader.config import ReaderConfig
from ihex_reader.decoder.lexer import DataCallback, RecordLexer, TokenCallback
from ihex_reader.decoder.records import DecoderState, LexerState


class Reader:
    """
    Byte-at-a-time Intel HEX reader.

    Args:
        data_callback: Receives (address, byte) for every data byte
        token_callback: Optional observer for decoded tokens
        config: Session configuration (only validate_eof_checksum is used)

    A Reader must not be fed from more than one thread at a time, and the
    data callback must not feed the same Reader.
    """

    def __init__(
        self,
        data_callback: Optional[DataCallback] = None,
        token_callback: Optional[TokenCallback] = None,
        config: Optional[ReaderConfig] = None,
    ):
        config = config or ReaderConfig()
        self._lexer = RecordLexer(
            data_callback=data_callback,
            token_callback=token_callback,
            validate_eof_checksum=config.validate_eof_checksum,
        )

    def init(self, data_callback: Optional[DataCallback]) -> None:
        """Bind the data callback. Decoding state is left untouched."""
        self._lexer.data_callback = data_callback

    def begin(self) -> None:
        """Start a new stream: back to WAIT_MARK with a zero extension base."""
        self._lexer.reset()

    def feed(self, byte: int) -> Any:
        """Feed one byte (0-255) and return its status."""
        return self._lexer.put(byte)

    def feed_all(self, data: Iterable[int]) -> Iterator[tuple[int, Any]]:
        """
        Feed every byte of `data` in order.

        Yields:
            (offset, status) for each byte fed
        """
        for offset, byte in enumerate(data):
            yield offset, self._lexer.put(byte)

    @property
    def data_callback(self) -> Optional[DataCallback]:
        return self._lexer.data_callback

    @property
    def state(self) -> DecoderState:
        return self._lexer.state

    @property
    def phase(self) -> LexerState:
        return self._lexer.state.phase

    @property
    def extension_base(self) -> int:
        return self._lexer.extension.base
