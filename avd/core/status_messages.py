"""Human readable messages for broken AVDs."""

from typing import Optional

from avd.core.avd_info import AvdInfo, AvdStatus, get_config_file, get_ini_file

STATUS_MESSAGES = {
    AvdStatus.ERROR_PATH: "Missing AVD 'path' property in {ini_file}",
    AvdStatus.ERROR_CONFIG: "Missing config.ini file in {path}",
    AvdStatus.ERROR_TARGET_HASH: "Missing 'target' property in {ini_file}",
    AvdStatus.ERROR_TARGET: "Unknown target '{target_hash}' in {ini_file}",
    AvdStatus.ERROR_PROPERTIES: "Failed to parse properties from {config_file}",
    AvdStatus.ERROR_IMAGE_DIR: "Invalid value in image.sysdir. Run 'android update avd -n {name}'",
}


def get_error_message(avd: AvdInfo, avd_root: str) -> Optional[str]:
    """
    Return why an AVD is broken, or None for a valid AVD.

    Args:
        avd: The AVD to describe
        avd_root: Folder holding the AVD descriptors
    """
    template = STATUS_MESSAGES.get(avd.status)
    if template is None:
        return None

    return template.format(
        name=avd.name,
        path=avd.path,
        target_hash=avd.target_hash,
        ini_file=get_ini_file(avd_root, avd.name),
        config_file=get_config_file(avd.path) if avd.path else None,
    )
