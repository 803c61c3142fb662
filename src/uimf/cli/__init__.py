"""Command-line interface for container maintenance.

This package contains the core execution logic; scripts/ only wraps it.
"""

from uimf.cli.run_writer import main, run_writer, setup_logging

__all__ = ['main', 'run_writer', 'setup_logging']
