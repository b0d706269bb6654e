"""Status computation for AVDs read from disk."""

import os
from typing import Mapping, Optional

from avd.core.avd_info import AVD_INI_IMAGES_1, AVD_INI_IMAGES_2, AvdStatus, Target


def check_image_sysdirs(sdk_location: str, properties: Optional[Mapping[str, str]]) -> bool:
    """
    Check that the system image folders declared in config.ini exist.

    image.sysdir.1 is required. image.sysdir.2 is optional and only looked at
    when image.sysdir.1 is valid.
    """
    image_sysdir = (properties or {}).get(AVD_INI_IMAGES_1)
    if not image_sysdir:
        return False
    if not os.path.isdir(os.path.join(sdk_location, image_sysdir)):
        return False

    image_sysdir = properties.get(AVD_INI_IMAGES_2)
    if image_sysdir is not None and not os.path.isdir(os.path.join(sdk_location, image_sysdir)):
        return False

    return True


def compute_status(
    avd_path: Optional[str],
    config_present: bool,
    target_hash: Optional[str],
    target: Optional[Target],
    properties: Optional[Mapping[str, str]],
    image_dirs_valid: bool,
) -> AvdStatus:
    """
    Return the status of an AVD. The first failing check wins.

    Args:
        avd_path: Data folder from the descriptor, None if missing
        config_present: Whether config.ini exists in the data folder
        target_hash: Target hash from the descriptor, None if missing
        target: Target resolved from the hash, None if unknown
        properties: Parsed config.ini, None if it could not be parsed
        image_dirs_valid: Result of check_image_sysdirs
    """
    if not avd_path:
        return AvdStatus.ERROR_PATH
    if not config_present:
        return AvdStatus.ERROR_CONFIG
    if not target_hash:
        return AvdStatus.ERROR_TARGET_HASH
    if target is None:
        return AvdStatus.ERROR_TARGET
    if properties is None:
        return AvdStatus.ERROR_PROPERTIES
    if not image_dirs_valid:
        return AvdStatus.ERROR_IMAGE_DIR
    return AvdStatus.OK
