"""
CLI Module - Command Line Interface for novel2notion.
"""

from .app import main, run
from .exit_codes import ExitCode

__all__ = ["main", "run", "ExitCode"]
