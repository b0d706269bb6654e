"""
Startup wiring for embedding the AVD manager in a service.

Loads the .env file, configures logging and error reporting, scans the SDK
and returns a ready AvdManager.
"""

import logging
import os
from typing import Optional

from avd.core.avd_manager import AvdManager
from sdklib.config import LOGS_DIR, get_sdk_path, load_environment
from sdklib.logging_config import init_error_reporting, setup_logger
from sdklib.sdk_manager import SdkManager

logger = logging.getLogger(__name__)


def build_avd_manager(
    sdk_location: Optional[str] = None,
    log_dir: Optional[str] = None,
    env_dir: Optional[str] = None,
) -> AvdManager:
    """
    Build an AvdManager the way a long running service needs it.

    Args:
        sdk_location: SDK to scan, defaults to ANDROID_HOME or the platform default
        log_dir: Folder for the main and per-AVD logs, defaults to LOGS_DIR
        env_dir: Folder holding the .env files, defaults to the project root

    Raises:
        AndroidLocationError: If the AVD folder cannot be resolved or created
    """
    load_environment(env_dir)

    # Read after load_environment so values from the .env file apply
    log_dir = log_dir or os.environ.get("AVD_LOGS_DIR", LOGS_DIR)
    setup_logger(log_dir, os.environ.get("LOG_LEVEL"))
    init_error_reporting()

    sdk_location = sdk_location or get_sdk_path()
    sdk = SdkManager.load(sdk_location)
    if not sdk.targets:
        logger.warning(f"No targets found in SDK {sdk_location}")

    return AvdManager(sdk, log_dir=log_dir)
