"""
ihex-reader Configuration
=========================

Runtime settings for the decoder, the memory image output and the serial
byte source. Configuration can come from:
- Default values (defined here)
- Environment variables (ReaderConfig.from_env)
- Command-line options (the CLI overrides fields after loading)
"""

from dataclasses import dataclass
from typing import Optional
import os


@dataclass
class ReaderConfig:
    """
    Configuration for a decoding session.

    Attributes:
        validate_eof_checksum: Check the checksum of end-of-file records
            instead of reporting END unconditionally (default: False)
        fill_byte: Byte used for gaps when flattening an image (default: 0xFF,
            the erased state of flash memory)
        port: Serial port device for the serial byte source
        baud_rate: Serial baud rate (default: 115200)
        timeout: Serial read timeout in seconds (default: 1.0)
        idle_timeout: Give up when no byte arrives for this long (default: 10.0)
        max_errors: Stop collecting after this many decode errors (default: 100)
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # DECODER
    # ═══════════════════════════════════════════════════════════════════════════

    validate_eof_checksum: bool = False
    max_errors: int = 100

    # ═══════════════════════════════════════════════════════════════════════════
    # IMAGE OUTPUT
    # ═══════════════════════════════════════════════════════════════════════════

    fill_byte: int = 0xFF

    # ═══════════════════════════════════════════════════════════════════════════
    # SERIAL SOURCE
    # ═══════════════════════════════════════════════════════════════════════════

    port: Optional[str] = None
    baud_rate: int = 115200
    timeout: float = 1.0
    idle_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "ReaderConfig":
        """
        Create a ReaderConfig from environment variables.

        Environment variables (all optional):
            IHEX_VALIDATE_EOF_CHECKSUM: "1"/"true"/"yes" to enable
            IHEX_MAX_ERRORS: Error collection limit
            IHEX_FILL_BYTE: Gap filler, decimal or 0x-prefixed hex
            IHEX_PORT: Serial port device
            IHEX_BAUD: Serial baud rate
            IHEX_TIMEOUT: Serial read timeout in seconds
            IHEX_IDLE_TIMEOUT: Serial idle timeout in seconds

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        config = cls()

        if "IHEX_VALIDATE_EOF_CHECKSUM" in os.environ:
            config.validate_eof_checksum = os.environ[
                "IHEX_VALIDATE_EOF_CHECKSUM"
            ].strip().lower() in ("1", "true", "yes", "on")

        if "IHEX_MAX_ERRORS" in os.environ:
            config.max_errors = int(os.environ["IHEX_MAX_ERRORS"])

        if "IHEX_FILL_BYTE" in os.environ:
            config.fill_byte = int(os.environ["IHEX_FILL_BYTE"], 0)

        if "IHEX_PORT" in os.environ:
            config.port = os.environ["IHEX_PORT"]

        if "IHEX_BAUD" in os.environ:
            config.baud_rate = int(os.environ["IHEX_BAUD"])

        if "IHEX_TIMEOUT" in os.environ:
            config.timeout = float(os.environ["IHEX_TIMEOUT"])

        if "IHEX_IDLE_TIMEOUT" in os.environ:
            config.idle_timeout = float(os.environ["IHEX_IDLE_TIMEOUT"])

        return config
