"""
Serial Port Byte Source
=======================

This module feeds a Reader from a serial port, one byte at a time, the way
a bootloader receives a hex file over a UART. It handles:

- Port enumeration for the `ihexread ports` command
- Opening and closing ports with helpful error messages
- Receiving a hex stream until its end-of-file record

Serial Port Settings
--------------------
- Baud Rate: 115200 by default (any rate in VALID_BAUD_RATES)
- Data Bits: 8
- Parity: None
- Stop Bits: 1
- Flow Control: None

The decoder has no notion of time; the idle timeout that ends a stalled
transfer lives here.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Final, Optional

import serial
import serial.tools.list_ports

from ihex_reader.decoder.reader import Reader
from ihex_reader.decoder.records import Message
from ihex_reader.errors import (
    ConnectionError,
    DecodeError,
    LocationTracker,
    TimeoutError,
    error_for_message,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

VALID_BAUD_RATES: Final[tuple[int, ...]] = (
    1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600,
)

DEFAULT_BAUD_RATE: Final[int] = 115200

# Default read timeout in seconds
DEFAULT_TIMEOUT: Final[float] = 1.0

# Give up when the sender stays silent this long
DEFAULT_IDLE_TIMEOUT: Final[float] = 10.0


# =============================================================================
# Port Information
# =============================================================================

@dataclass(frozen=True)
class PortInfo:
    """
    Information about an available serial port.

    Attributes:
        device: System device path (e.g., '/dev/ttyUSB0', 'COM3')
        description: Human-readable description from the driver
        manufacturer: Device manufacturer (if available)
        vid: USB Vendor ID (None for non-USB ports)
        pid: USB Product ID (None for non-USB ports)
    """

    device: str
    description: str
    manufacturer: Optional[str]
    vid: Optional[int]
    pid: Optional[int]

    @property
    def is_usb(self) -> bool:
        return self.vid is not None

    def __str__(self) -> str:
        parts = [self.device]
        if self.description:
            parts.append(f"- {self.description}")
        if self.is_usb:
            parts.append(f"[{self.vid:04X}:{self.pid or 0:04X}]")
        return " ".join(parts)


def list_serial_ports() -> list[PortInfo]:
    """List all serial ports detected by the system."""
    ports = []

    for port in serial.tools.list_ports.comports():
        ports.append(PortInfo(
            device=port.device,
            description=port.description or "",
            manufacturer=port.manufacturer,
            vid=port.vid,
            pid=port.pid,
        ))
        logger.debug("Found port: %s", port.device)

    return ports


def format_port_list(ports: list[PortInfo]) -> str:
    """Format a list of ports for display, one per line."""
    if not ports:
        return "No serial ports found."
    return "\n".join(f"  {port}" for port in ports)


# =============================================================================
# Port Configuration
# =============================================================================

def open_serial_port(
    device: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    timeout: float = DEFAULT_TIMEOUT,
) -> serial.Serial:
    """
    Open a serial port configured as 8N1 without flow control.

    Args:
        device: Serial port device path (e.g., '/dev/ttyUSB0', 'COM3')
        baud_rate: Baud rate, one of VALID_BAUD_RATES
        timeout: Read timeout in seconds

    Returns:
        Configured and opened serial.Serial object. The caller closes it.

    Raises:
        ConnectionError: If the port cannot be opened
        ValueError: If baud_rate is not a valid value
    """
    if baud_rate not in VALID_BAUD_RATES:
        valid_str = ", ".join(str(b) for b in VALID_BAUD_RATES)
        raise ValueError(
            f"Invalid baud rate: {baud_rate}. Valid rates: {valid_str}"
        )

    logger.info("Opening serial port: %s at %d baud", device, baud_rate)

    try:
        port = serial.Serial(
            port=device,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
        port.reset_input_buffer()
        logger.debug("Port opened: %s (timeout=%.1f)", device, timeout)
        return port

    except serial.SerialException as e:
        error_msg = str(e)

        if "Permission denied" in error_msg:
            raise ConnectionError(
                f"Permission denied accessing {device}. "
                "You may need to add your user to the 'dialout' group: "
                "sudo usermod -a -G dialout $USER"
            )
        elif "No such file" in error_msg or "not found" in error_msg.lower():
            raise ConnectionError(
                f"Serial port not found: {device}. "
                "Use 'ihexread ports' to list available ports."
            )
        elif "busy" in error_msg.lower() or "in use" in error_msg.lower():
            raise ConnectionError(
                f"Serial port {device} is busy. "
                "Close any other programs using the port."
            )
        else:
            raise ConnectionError(f"Cannot open {device}: {e}")


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """Close a serial port, logging rather than raising on failure."""
    if port is None:
        return

    try:
        if port.is_open:
            port.close()
            logger.debug("Serial port closed")
    except serial.SerialException as e:
        logger.warning("Error closing serial port: %s", e)


# =============================================================================
# Stream Reception
# =============================================================================

@dataclass
class StreamResult:
    """
    Outcome of receiving one hex stream.

    Attributes:
        bytes_received: Number of bytes fed to the reader
        completed: True if an end-of-file record was decoded
        errors: Decode errors seen on the way, in order
    """
    bytes_received: int = 0
    completed: bool = False
    errors: list[DecodeError] = field(default_factory=list)


def receive_stream(
    port: Any,
    reader: Reader,
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    stop_on_error: bool = False,
    source: Optional[str] = None,
) -> StreamResult:
    """
    Feed a reader from a port until an end-of-file record is decoded.

    The reader is reset with begin() first. Bytes are read and fed one at a
    time; the decoder's statuses are turned into DecodeError instances.

    Args:
        port: Open serial.Serial (anything with read(size) works)
        reader: Reader with its data callback already bound
        idle_timeout: Seconds without a byte before giving up
        stop_on_error: Raise the first decode error instead of collecting it
        source: Name used in error locations (default: the port name)

    Returns:
        StreamResult summarising the transfer.

    Raises:
        TimeoutError: If no byte arrives within idle_timeout
        DecodeError: On the first error when stop_on_error is set
    """
    source = source or getattr(port, "port", None) or "<serial>"
    tracker = LocationTracker(source)
    result = StreamResult()
    reader.begin()
    last_activity = time.monotonic()

    while True:
        chunk = port.read(1)
        if not chunk:
            if time.monotonic() - last_activity > idle_timeout:
                raise TimeoutError(
                    f"No data from {source} for {idle_timeout:.1f}s "
                    f"after {result.bytes_received} bytes"
                )
            continue

        last_activity = time.monotonic()
        byte = chunk[0]
        result.bytes_received += 1
        location = tracker.advance(byte)
        status = reader.feed(byte)

        if status == Message.END:
            result.completed = True
            logger.info("Received %d bytes from %s", result.bytes_received, source)
            return result

        error = error_for_message(status, location, byte)
        if error is not None:
            if stop_on_error:
                raise error
            logger.warning("%s", error)
            result.errors.append(error)
