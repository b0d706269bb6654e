"""The immutable description of one Android Virtual Device and the keys of its files."""

import os
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType
from typing import Mapping, Optional

from sdklib.targets import Target

# Keys of the <name>.ini descriptor
AVD_INFO_PATH = "path"
AVD_INFO_TARGET = "target"

# Keys of <avd folder>/config.ini
AVD_INI_SKIN_PATH = "skin.path"  # SDK-relative skin folder, or a 320x480 like constant
AVD_INI_SKIN_NAME = "skin.name"  # Display name only, ignored by the emulator
AVD_INI_SDCARD_PATH = "sdcard.path"
AVD_INI_SDCARD_SIZE = "sdcard.size"  # Display only, the image is always sdcard.img
AVD_INI_IMAGES_1 = "image.sysdir.1"  # Add-on images, or platform images when there is no add-on
AVD_INI_IMAGES_2 = "image.sysdir.2"  # Platform images of an add-on

USERDATA_IMG = "userdata.img"
CONFIG_INI = "config.ini"
SDCARD_IMG = "sdcard.img"

INI_EXTENSION = ".ini"
INI_NAME_PATTERN = re.compile(r"(.+)\.ini$", re.IGNORECASE)


class AvdStatus(Enum):
    """Validity of an AVD. Anything but OK means the AVD cannot be launched."""

    OK = auto()
    ERROR_PATH = auto()  # Missing 'path' property in the ini file
    ERROR_CONFIG = auto()  # Missing config.ini file in the AVD data folder
    ERROR_TARGET_HASH = auto()  # Missing 'target' property in the ini file
    ERROR_TARGET = auto()  # Target was not resolved from its hash
    ERROR_PROPERTIES = auto()  # Unable to parse config.ini
    ERROR_IMAGE_DIR = auto()  # System image folder in config.ini doesn't exist


@dataclass(frozen=True)
class AvdInfo:
    """
    An Android Virtual Device as found on disk or as just created.

    Values never change. Moving, renaming or repairing an AVD produces a new
    AvdInfo which replaces this one in the registry.
    """

    name: str
    path: Optional[str]
    target_hash: Optional[str]
    target: Optional[Target]
    properties: Mapping[str, str] = field(default_factory=dict)
    status: AvdStatus = AvdStatus.OK

    def __post_init__(self):
        # Copy so later changes to the caller's dict are not visible
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties or {})))

    def __hash__(self):
        return hash((self.name, self.path, self.target_hash, self.status))

    @property
    def is_valid(self) -> bool:
        return self.status is AvdStatus.OK

    @property
    def has_target(self) -> bool:
        return self.target is not None

    @property
    def config_file(self) -> Optional[str]:
        """Path of config.ini, or None when the AVD has no data folder."""
        if self.path is None:
            return None
        return get_config_file(self.path)

    def get_ini_file(self, avd_root: str) -> str:
        return get_ini_file(avd_root, self.name)


def get_ini_file(avd_root: str, name: str) -> str:
    """Return the path of the <name>.ini descriptor inside the AVD root folder."""
    return os.path.join(avd_root, name + INI_EXTENSION)


def get_config_file(avd_path: str) -> str:
    return os.path.join(avd_path, CONFIG_INI)


def get_name_from_ini_file(ini_path: str) -> str:
    """Strip the .ini extension (any case) from a descriptor file name."""
    file_name = os.path.basename(ini_path)
    match = INI_NAME_PATTERN.match(file_name)
    if match:
        return match.group(1)
    return file_name
