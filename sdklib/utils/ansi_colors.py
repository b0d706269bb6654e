"""
ANSI color codes used by the log formatters.

Usage:
    from sdklib.utils.ansi_colors import GREEN, RESET
    print(f"{GREEN}Created AVD{RESET}")
"""

import os
import re
import sys

RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
WHITE = "\033[37m"
GRAY = "\033[90m"
BRIGHT_YELLOW = "\033[93m"

RESET = "\033[0m"  # Reset all styles and colors

ANSI_ESCAPE_PATTERN = re.compile(r"\033\[[0-9;]*m")


def strip_ansi(text):
    """Remove every ANSI color code from text."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


def supports_color(stream=None):
    """Determine if the given stream (stdout by default) supports ANSI color codes."""
    stream = stream or sys.stdout

    if not hasattr(stream, "isatty") or not stream.isatty():
        return False

    if "NO_COLOR" in os.environ or "NO_COLOR_CONSOLE" in os.environ:
        return False

    if "TERM" in os.environ:
        return os.environ["TERM"] != "dumb"

    return os.name == "posix"
