"""Dice notation module."""

from .codec import (
    decode,
    find_command,
    format_result,
    format_roll,
    parse_command,
    roll,
    roll_command,
)

__all__ = [
    "parse_command",
    "find_command",
    "roll",
    "roll_command",
    "format_result",
    "format_roll",
    "decode",
]
