"""
ihexread - Intel HEX Stream Decoder Command-Line Interface
==========================================================

This module implements the command-line interface for the streaming
decoder. Files are fed to the decoder one byte at a time, exactly as a
device receiving them over a serial line would see them.

Commands
--------
- **check**: Validate one or more hex files
- **records**: List the records of a hex file
- **dump**: Show the memory segments of a hex file, or write a binary
- **verify**: Compare a hex file against a binary image
- **listen**: Receive a hex stream from a serial port
- **ports**: List available serial ports

Usage Examples
--------------
Validate files:
    $ ihexread check firmware.hex bootloader.hex

List records:
    $ ihexread records firmware.hex

Write a flat binary, filling gaps with 0x00:
    $ ihexread dump firmware.hex -o firmware.bin --fill 00

Check a device dump against the hex file it was flashed from:
    $ ihexread verify firmware.hex readback.bin --base 0x08000000

Receive a file from a bootloader port:
    $ ihexread listen --port /dev/ttyUSB0 -o received.bin
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import click

from ihex_reader import __version__
from ihex_reader.cli.errors import ExitCode, handle_cli_exception
from ihex_reader.comms import (
    VALID_BAUD_RATES,
    close_serial_port,
    format_port_list,
    list_serial_ports,
    open_serial_port,
    receive_stream,
)
from ihex_reader.config import ReaderConfig
from ihex_reader.decoder import Message, Reader, RecordType, Token, TokenType
from ihex_reader.decoder.lexer import DataCallback
from ihex_reader.errors import (
    ErrorCollector,
    IHexError,
    LocationTracker,
    MissingEndError,
    StreamLocation,
    TooManyErrors,
    error_for_message,
)
from ihex_reader.image import MemoryImage

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Holds the session configuration (loaded from the environment, then
    overridden by global options) and the verbosity flag.
    """

    def __init__(self) -> None:
        self.config = ReaderConfig.from_env()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.ERROR
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


class HexIntType(click.ParamType):
    """
    Click parameter type for addresses and byte values.

    Accepts decimal, 0x-prefixed hex, or bare hex digits when `bare_hex`
    is set (used for fill bytes such as "FF").
    """
    name = "hex_int"

    def __init__(self, bare_hex: bool = False, maximum: Optional[int] = None):
        self.bare_hex = bare_hex
        self.maximum = maximum

    def convert(self, value, param: Optional[click.Parameter],
                ctx: Optional[click.Context]) -> int:
        if isinstance(value, int):
            result = value
        else:
            try:
                result = int(value, 16) if self.bare_hex else int(value, 0)
            except ValueError:
                self.fail(f"'{value}' is not a valid number", param, ctx)

        if result < 0 or (self.maximum is not None and result > self.maximum):
            self.fail(f"{value} is out of range", param, ctx)
        return result


ADDRESS = HexIntType(maximum=0xFFFFFFFF)
FILL_BYTE = HexIntType(bare_hex=True, maximum=0xFF)


# =============================================================================
# Stream Decoding
# =============================================================================

@dataclass
class DecodeSummary:
    """
    Outcome of feeding one stream through a Reader.

    Attributes:
        source: Stream name used in messages
        records: Number of records completed
        data_bytes: Number of data bytes dispatched
        completed: True if an end-of-file record was decoded
        collector: Errors and warnings found on the way
    """
    source: str
    records: int = 0
    data_bytes: int = 0
    completed: bool = False
    collector: ErrorCollector = field(default_factory=ErrorCollector)


def decode_stream(
    data: bytes,
    source: str,
    config: ReaderConfig,
    data_callback: Optional[DataCallback] = None,
    on_record: Optional[Callable[[Token, StreamLocation], None]] = None,
    strict: bool = False,
) -> DecodeSummary:
    """
    Feed `data` through a fresh Reader, byte by byte.

    Feeding stops at the end-of-file record. Every non-CONTINUE status is
    collected as a DecodeError with its line and column.

    Args:
        data: Stream contents
        source: Name for error locations
        config: Session configuration
        data_callback: Receives (address, byte) for each data byte
        on_record: Called with the CHECKSUM token and its location for
            every completed record
        strict: Treat a missing end-of-file record as an error
    """
    summary = DecodeSummary(source, collector=ErrorCollector(config.max_errors))
    tracker = LocationTracker(source)
    location = StreamLocation(source, 1, 0)

    def on_token(token: Token) -> None:
        if token.token_type == TokenType.CHECKSUM:
            summary.records += 1
            if on_record is not None:
                on_record(token, location)
        elif token.token_type == TokenType.DATA and token.address is not None:
            summary.data_bytes += 1

    reader = Reader(data_callback, token_callback=on_token, config=config)
    reader.begin()

    try:
        for byte in data:
            location = tracker.advance(byte)
            status = reader.feed(byte)

            if status == Message.END:
                summary.completed = True
                break

            error = error_for_message(status, location, byte)
            if error is not None:
                summary.collector.add(error)
    except TooManyErrors as e:
        summary.collector.add_warning(str(e))

    if not summary.completed:
        if strict:
            summary.collector.errors.append(MissingEndError(source))
        else:
            summary.collector.add_warning(f"{source}: no end-of-file record")

    logger.debug(
        f"{source}: {summary.records} records, {summary.data_bytes} data bytes"
    )
    return summary


def _read_input(path: Path) -> bytes:
    if str(path) == "-":
        return sys.stdin.buffer.read()
    return path.read_bytes()


def _report(summary: DecodeSummary) -> bool:
    """Print collected errors and warnings; return True if there were errors."""
    collector = summary.collector
    if collector.has_errors() or collector.warnings:
        click.echo(collector.report(), err=True)
    return collector.has_errors()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.version_option(__version__, "--version", "-V", prog_name="ihexread")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option(
    "--validate-eof-checksum",
    is_flag=True,
    help="Also check the checksum of end-of-file records",
)
@pass_context
def main(ctx: Context, verbose: bool, validate_eof_checksum: bool) -> None:
    """
    Streaming Intel HEX decoder.

    Decode, check and receive Intel HEX firmware images one byte at a time.

    \b
    Commands:
      check     Validate hex files
      records   List the records of a hex file
      dump      Show segments or write a binary image
      verify    Compare a hex file with a binary image
      listen    Receive a hex stream from a serial port
      ports     List serial ports
    """
    ctx.verbose = verbose
    if validate_eof_checksum:
        ctx.config.validate_eof_checksum = True
    ctx.setup_logging()


# =============================================================================
# Check Command
# =============================================================================

@main.command("check")
@click.argument(
    "input_files",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=False, allow_dash=True, path_type=Path),
    required=True,
)
@click.option("--strict", is_flag=True, help="Fail when the end-of-file record is missing")
@pass_context
def cmd_check(ctx: Context, input_files: tuple[Path, ...], strict: bool) -> None:
    """
    Validate hex files.

    Every error is reported with its line and column; decoding continues
    past errors so all of them are listed.
    """
    failed = False

    try:
        for path in input_files:
            summary = decode_stream(
                _read_input(path), str(path), ctx.config, strict=strict)

            if _report(summary):
                failed = True
            else:
                click.echo(
                    f"{path}: OK ({summary.records} records, "
                    f"{summary.data_bytes} data bytes)"
                )
    except (IHexError, OSError) as e:
        handle_cli_exception(e, ctx.verbose)

    if failed:
        sys.exit(ExitCode.DECODE_ERROR)


# =============================================================================
# Records Command
# =============================================================================

@main.command("records")
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, allow_dash=True, path_type=Path),
)
@pass_context
def cmd_records(ctx: Context, input_file: Path) -> None:
    """List every record of a hex file with its outcome."""

    def on_record(token: Token, location: StreamLocation) -> None:
        record = token.record
        outcome = token.message.name if token.message is not None else "?"
        click.echo(
            f"{location.line:6d}  {record.record_type:02X} "
            f"{RecordType.get_name(record.record_type):<26} "
            f"0x{record.load_offset:04X}  {record.length:3d}  {outcome}"
        )

    try:
        click.echo("  line  type                          offset   len  status")
        summary = decode_stream(
            _read_input(input_file), str(input_file), ctx.config,
            on_record=on_record)
    except (IHexError, OSError) as e:
        handle_cli_exception(e, ctx.verbose)

    if _report(summary):
        sys.exit(ExitCode.DECODE_ERROR)


# =============================================================================
# Dump Command
# =============================================================================

@main.command("dump")
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, allow_dash=True, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a flat binary image instead of listing segments",
)
@click.option("--fill", type=FILL_BYTE, default=None, help="Gap fill byte in hex (default: FF)")
@click.option("--start", type=ADDRESS, default=None, help="First address of the binary")
@click.option("--end", type=ADDRESS, default=None, help="Address one past the last byte")
@pass_context
def cmd_dump(
    ctx: Context,
    input_file: Path,
    output: Optional[Path],
    fill: Optional[int],
    start: Optional[int],
    end: Optional[int],
) -> None:
    """
    Decode a hex file into memory.

    Without -o, lists the contiguous segments. With -o, writes the image
    as one binary block with gaps filled.
    """
    try:
        image = MemoryImage()
        summary = decode_stream(
            _read_input(input_file), str(input_file), ctx.config, image.write)

        if _report(summary):
            sys.exit(ExitCode.DECODE_ERROR)

        if output is None:
            segments = image.segments()
            if not segments:
                click.echo("No data records.")
            for segment in segments:
                click.echo(f"  {segment}")
            return

        fill_byte = ctx.config.fill_byte if fill is None else fill
        block = image.to_bytes(start, end, fill_byte)
        output.write_bytes(block)
        click.echo(f"Wrote {output} ({len(block)} bytes, {len(image)} from data records)")

    except (IHexError, OSError) as e:
        handle_cli_exception(e, ctx.verbose)


# =============================================================================
# Verify Command
# =============================================================================

@main.command("verify")
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, allow_dash=True, path_type=Path),
)
@click.argument(
    "binary_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--base", type=ADDRESS, default=0, help="Load address of the binary (default: 0)")
@pass_context
def cmd_verify(ctx: Context, input_file: Path, binary_file: Path, base: int) -> None:
    """
    Compare a hex file with a binary image.

    Each data byte of the hex file is checked against the binary loaded at
    BASE. Mismatches are reported with the hex file location of the byte.
    """
    try:
        reference = MemoryImage.from_bytes(binary_file.read_bytes(), base)
        image = MemoryImage(reference=reference)
        summary = decode_stream(
            _read_input(input_file), str(input_file), ctx.config, image.write)
    except (IHexError, OSError) as e:
        handle_cli_exception(e, ctx.verbose)

    failed = _report(summary)
    if image.mismatches:
        click.echo(f"{len(image.mismatches)} mismatched bytes:", err=True)
        for mismatch in image.mismatches[:20]:
            expected = ("--" if mismatch.expected is None
                        else f"{mismatch.expected:02X}")
            click.echo(
                f"  0x{mismatch.address:08X}: hex {mismatch.actual:02X}, "
                f"binary {expected}",
                err=True,
            )

    if failed:
        sys.exit(ExitCode.DECODE_ERROR)
    click.echo(f"{input_file}: matches {binary_file} ({summary.data_bytes} bytes)")


# =============================================================================
# Listen Command
# =============================================================================

@main.command("listen")
@click.option("-p", "--port", default=None, help="Serial port (default: $IHEX_PORT)")
@click.option(
    "-b", "--baud",
    type=click.Choice([str(b) for b in VALID_BAUD_RATES]),
    default=None,
    help="Baud rate (default: 115200)",
)
@click.option("--idle-timeout", type=float, default=None, help="Seconds of silence before giving up")
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the received image as a flat binary",
)
@pass_context
def cmd_listen(
    ctx: Context,
    port: Optional[str],
    baud: Optional[str],
    idle_timeout: Optional[float],
    output: Optional[Path],
) -> None:
    """Receive a hex stream from a serial port until its end-of-file record."""
    config = ctx.config
    device = port or config.port
    if not device:
        handle_cli_exception(
            click.BadParameter("no serial port given (use --port or IHEX_PORT)"))

    baud_rate = int(baud) if baud else config.baud_rate
    timeout = config.idle_timeout if idle_timeout is None else idle_timeout

    serial_port = None
    try:
        serial_port = open_serial_port(device, baud_rate, config.timeout)
        image = MemoryImage()
        click.echo(f"Listening on {device} at {baud_rate} baud...")
        result = receive_stream(
            serial_port, Reader(image.write, config=config), idle_timeout=timeout)
    except (IHexError, ValueError) as e:
        handle_cli_exception(e, ctx.verbose, error_type="Serial")
    finally:
        close_serial_port(serial_port)

    for error in result.errors:
        click.echo(str(error), err=True)

    click.echo(
        f"Received {result.bytes_received} bytes, {len(image)} data bytes "
        f"in {len(image.segments())} segments"
    )

    if output is not None and len(image) > 0:
        try:
            block = image.to_bytes(fill=config.fill_byte)
            output.write_bytes(block)
        except (IHexError, OSError) as e:
            handle_cli_exception(e, ctx.verbose)
        click.echo(f"Wrote {output} ({len(block)} bytes)")

    if result.errors:
        sys.exit(ExitCode.DECODE_ERROR)


# =============================================================================
# Ports Command
# =============================================================================

@main.command("ports")
def cmd_ports() -> None:
    """List available serial ports."""
    click.echo(format_port_list(list_serial_ports()))


if __name__ == "__main__":
    main()
