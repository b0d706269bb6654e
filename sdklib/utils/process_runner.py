"""
Running external SDK tools while capturing their output.

Both output streams of the child are drained on their own thread. A child that
fills an unread pipe buffer would otherwise block forever. There is no timeout:
a tool that never exits blocks the caller.
"""

import logging
import subprocess
import threading
from typing import IO, List, NamedTuple, Optional, Sequence

from sdklib.errors import ToolError

logger = logging.getLogger(__name__)


class ProcessResult(NamedTuple):
    returncode: int
    stdout: List[str]
    stderr: List[str]


def _drain_stream(stream: Optional[IO[str]], lines: List[str]) -> None:
    if stream is None:
        return

    try:
        for line in iter(stream.readline, ""):
            lines.append(line.rstrip("\r\n"))
    except (OSError, ValueError) as e:
        logger.warning(f"Stopped reading process output: {e}")
    finally:
        stream.close()


def grab_process_output(process: subprocess.Popen) -> ProcessResult:
    """
    Collect stdout and stderr of a running process and wait for it to finish.

    The two reader threads are joined before the exit code is read so that
    every line written by the child is in the result.

    Args:
        process: A process started with stdout and stderr pipes in text mode

    Returns:
        ProcessResult: (returncode, stdout lines, stderr lines)
    """
    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    readers = [
        threading.Thread(
            target=_drain_stream, args=(process.stderr, stderr_lines), name="process-stderr", daemon=True
        ),
        threading.Thread(
            target=_drain_stream, args=(process.stdout, stdout_lines), name="process-stdout", daemon=True
        ),
    ]
    for reader in readers:
        reader.start()
    for reader in readers:
        reader.join()

    returncode = process.wait()
    return ProcessResult(returncode, stdout_lines, stderr_lines)


def run_tool(command: Sequence[str], env: Optional[dict] = None) -> ProcessResult:
    """
    Launch a tool and wait for it, capturing its output.

    Raises:
        ToolError: If the tool cannot be launched
    """
    command = [str(part) for part in command]
    logger.info(f"Running: {' '.join(command)}")

    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env,
        )
    except OSError as e:
        raise ToolError(command, f"Failed to launch '{command[0]}': {e}") from e

    result = grab_process_output(process)
    if result.returncode != 0:
        logger.debug(f"'{command[0]}' exited with code {result.returncode}")
    return result
