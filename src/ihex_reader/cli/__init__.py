"""
ihex-reader Command-Line Interface
==================================

This package provides the `ihexread` command-line tool: checking,
listing, dumping and verifying Intel HEX files, and receiving hex streams
from a serial port. It is implemented as a Click application.
"""

__all__ = ["ihexread"]
