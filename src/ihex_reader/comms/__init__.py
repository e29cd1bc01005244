"""
Byte Sources for the Streaming Decoder
======================================

The decoder accepts bytes from any ordered producer. This package provides
the serial port source used to receive hex files from a UART.

    >>> from ihex_reader.comms import open_serial_port, receive_stream
    >>> from ihex_reader.decoder import Reader
    >>> from ihex_reader.image import MemoryImage
    >>> image = MemoryImage()
    >>> port = open_serial_port("/dev/ttyUSB0")          # doctest: +SKIP
    >>> result = receive_stream(port, Reader(image.write))  # doctest: +SKIP
"""

from ihex_reader.comms.serial import (
    VALID_BAUD_RATES,
    DEFAULT_BAUD_RATE,
    DEFAULT_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT,
    PortInfo,
    StreamResult,
    list_serial_ports,
    format_port_list,
    open_serial_port,
    close_serial_port,
    receive_stream,
)

__all__ = [
    "VALID_BAUD_RATES",
    "DEFAULT_BAUD_RATE",
    "DEFAULT_TIMEOUT",
    "DEFAULT_IDLE_TIMEOUT",
    "PortInfo",
    "StreamResult",
    "list_serial_ports",
    "format_port_list",
    "open_serial_port",
    "close_serial_port",
    "receive_stream",
]
