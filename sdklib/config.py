import logging
import os
import platform
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOGS_DIR = os.environ.get("AVD_LOGS_DIR", os.path.join(BASE_DIR, "logs"))

# Logging settings
LOG_FILE_NAME = "avd_manager.log"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Default Android SDK path
DEFAULT_ANDROID_SDK = "/opt/android-sdk"
# Alternative for macOS
if platform.system() == "Darwin":
    DEFAULT_ANDROID_SDK = os.path.expanduser("~/Library/Android/sdk")

# SDK layout
FD_TOOLS = "tools"
FD_PLATFORMS = "platforms"
FD_ADDONS = "add-ons"
FD_IMAGES = "images"
FD_SKINS = "skins"
FD_DATA = "data"
FD_DOCS = "docs"
FD_SAMPLES = "samples"

MKSDCARD_TOOL_NAME = "mksdcard.exe" if platform.system() == "Windows" else "mksdcard"


def get_sdk_path() -> str:
    """Get Android SDK path from environment variables or use default."""
    return os.environ.get("ANDROID_HOME") or os.environ.get("ANDROID_SDK_ROOT") or DEFAULT_ANDROID_SDK


def get_mksdcard_path(sdk_location: str) -> str:
    """Return the location of the sdcard image tool inside an SDK."""
    return os.path.join(sdk_location, FD_TOOLS, MKSDCARD_TOOL_NAME)


def load_environment(base_dir: Optional[str] = None) -> str:
    """
    Load environment variables from the .env file matching ENVIRONMENT.

    Args:
        base_dir: Directory holding the .env files, defaults to the project root

    Returns:
        str: Path of the env file that was looked up
    """
    base = Path(base_dir or BASE_DIR)
    environment = os.getenv("ENVIRONMENT", "DEV").lower()

    if environment in ("prod", "staging"):
        env_file = base / f".env.{environment}"
    else:
        env_file = base / ".env"

    logger.info(f"Loading {environment} environment variables from {env_file}")
    load_dotenv(env_file, override=True)
    return str(env_file)
