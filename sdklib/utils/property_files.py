"""Reading and writing of the ``key=value`` files used by the SDK and by AVDs."""

import logging
import re
from typing import Dict, Mapping

from sdklib.errors import PropertyFileError

logger = logging.getLogger(__name__)

# Same key shape the SDK tools accept. The value is everything after "=", kept as is.
PROPERTY_KEY_PATTERN = re.compile(r"[a-zA-Z0-9._-]+")
PROPERTY_LINE_PATTERN = re.compile(r"^\s*([a-zA-Z0-9._-]+)\s*=(.*)$")


def is_valid_property(key: str, value: str) -> bool:
    """Return True if key and value can be written and read back unchanged."""
    if not PROPERTY_KEY_PATTERN.fullmatch(key):
        return False
    return value.splitlines() in ([], [value])


def parse_properties(text: str, source: str = "<string>") -> Dict[str, str]:
    """Parse property text into an ordered dict.

    Blank lines and lines starting with ``#`` are ignored. Any other line that
    is not a ``key=value`` pair makes the whole file invalid. Values are not
    stripped.
    """
    properties: Dict[str, str] = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        match = PROPERTY_LINE_PATTERN.match(line)
        if not match:
            raise PropertyFileError(source, f"Invalid property on line {line_number}")

        properties[match.group(1)] = match.group(2)

    return properties


def parse_property_file(path: str) -> Dict[str, str]:
    """
    Read a property file from disk.

    Args:
        path: Path to the file to read

    Returns:
        Dict[str, str]: The properties, in file order

    Raises:
        PropertyFileError: If the file cannot be read or contains an invalid line
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise PropertyFileError(path, f"Unable to read property file ({e})") from e

    return parse_properties(content, source=path)


def write_property_file(path: str, values: Mapping[str, str]) -> None:
    """Write values to path as one ``key=value`` line per entry, keeping order."""
    with open(path, "w", encoding="utf-8") as f:
        for key, value in values.items():
            f.write(f"{key}={value}\n")

    logger.debug(f"Wrote {len(values)} properties to {path}")
