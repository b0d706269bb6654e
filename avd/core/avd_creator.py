import logging
import os
import re
import shutil
from typing import Dict, Mapping, Optional

from avd.core.avd_info import (
    AVD_INFO_PATH,
    AVD_INFO_TARGET,
    AVD_INI_IMAGES_1,
    AVD_INI_IMAGES_2,
    AVD_INI_SDCARD_PATH,
    AVD_INI_SDCARD_SIZE,
    AVD_INI_SKIN_NAME,
    AVD_INI_SKIN_PATH,
    CONFIG_INI,
    SDCARD_IMG,
    USERDATA_IMG,
    AvdInfo,
    AvdStatus,
    Target,
    get_ini_file,
)
from avd.core.avd_registry import AvdRegistry
from sdklib.config import get_mksdcard_path
from sdklib.errors import AndroidLocationError, InvalidTargetPathError, ToolError
from sdklib.targets import PathCategory
from sdklib.utils.process_runner import run_tool
from sdklib.utils.property_files import is_valid_property, write_property_file

logger = logging.getLogger(__name__)

# Pixel sized skin "names", e.g. "320x480"
NUMERIC_SKIN_SIZE = re.compile(r"[0-9]{2,}x[0-9]{2,}")

# SD card sizes, e.g. "4096", "4K" or "16M"
SDCARD_SIZE_PATTERN = re.compile(r"\d+[MK]?")

IMAGE_NAME_PATTERN = re.compile(r"(.+)\.img$", re.IGNORECASE)


def recursive_delete(folder: str) -> bool:
    """
    Delete the content of a folder, but not the folder itself.

    Subfolders are removed with everything they contain.

    Returns:
        bool: True if everything was deleted
    """
    success = True
    for entry in os.listdir(folder):
        path = os.path.join(folder, entry)
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            success = False
    return success


def write_avd_ini_file(ini_file: str, avd_folder: str, target_hash: Optional[str]) -> str:
    """Write the <name>.ini descriptor pointing at an AVD data folder."""
    values = {AVD_INFO_PATH: os.path.abspath(avd_folder)}
    if target_hash:
        values[AVD_INFO_TARGET] = target_hash
    write_property_file(ini_file, values)
    return ini_file


class AvdCreator:
    """
    Creates the files of new AVDs and computes the system image paths of existing ones.
    """

    def __init__(self, sdk, registry: AvdRegistry, mksdcard_path: Optional[str] = None):
        self.sdk = sdk
        self.registry = registry
        self.mksdcard_path = mksdcard_path or get_mksdcard_path(sdk.location)

    def create_avd(
        self,
        avd_folder: str,
        name: str,
        target: Target,
        skin_name: Optional[str] = None,
        sdcard: Optional[str] = None,
        hardware_config: Optional[Mapping[str, str]] = None,
        remove_previous: bool = False,
    ) -> Optional[AvdInfo]:
        """
        Create a new AVD and add it to the registry.

        The caller checks that no other AVD uses this name. When re-creating an
        AVD with remove_previous, the new AVD replaces the old registry entry.

        Args:
            avd_folder: Data folder of the AVD, created as needed
            name: Name of the AVD
            target: Target the AVD runs
            skin_name: Skin name or WIDTHxHEIGHT, defaults to the target's default skin
            sdcard: Path to an existing sdcard image, or a size like 64M to create one
            hardware_config: Extra config.ini values, applied last
            remove_previous: Clear the content of avd_folder if it already exists

        Returns:
            Optional[AvdInfo]: The new AVD, or None if it could not be created
        """
        avd_folder = os.path.abspath(avd_folder)

        if os.path.exists(avd_folder):
            if not remove_previous:
                logger.error(f"Folder {avd_folder} is in the way. Use --force if you want to overwrite.")
                return None

            if not os.path.isdir(avd_folder):
                logger.error(f"{avd_folder} is not a folder, it cannot be used for an AVD.")
                return None

            logger.info(f"Removing previous content of {avd_folder}")
            if not recursive_delete(avd_folder):
                logger.error(f"Unable to clear the content of {avd_folder}")
                return None
        else:
            try:
                os.makedirs(avd_folder)
            except OSError as e:
                logger.error(f"Failed to create folder {avd_folder}: {e}")
                return None

        ini_file = None
        avd_info = None
        try:
            ini_file = get_ini_file(self.registry.avd_root, name)
            write_avd_ini_file(ini_file, avd_folder, target.hash_string())

            values = self._write_avd_folder(avd_folder, target, skin_name, sdcard, hardware_config)
            if values is not None:
                avd_info = AvdInfo(name, avd_folder, target.hash_string(), target, values, AvdStatus.OK)
        except AndroidLocationError as e:
            logger.error(f"Unable to locate the AVD folder: {e}")
        except OSError as e:
            logger.error(f"Failed to create AVD '{name}': {e}")
        finally:
            if avd_info is None:
                self._cleanup(ini_file, avd_folder)

        if avd_info is None:
            # The descriptor of a previous AVD with this name was overwritten then deleted
            previous = self.registry.find(name)
            if previous is not None and ini_file and not os.path.exists(ini_file):
                self.registry.remove(previous)
            return None

        # A forced re-create takes the place of the previous AVD with this name
        if self.registry.add_or_replace(avd_info) is not None:
            logger.info(f"Replaced previous AVD '{name}'")

        if target.is_platform:
            logger.info(f"Created AVD '{name}' based on {target.name}")
        else:
            logger.info(f"Created AVD '{name}' based on {target.name} ({target.vendor})")

        return avd_info

    def _write_avd_folder(
        self,
        avd_folder: str,
        target: Target,
        skin_name: Optional[str],
        sdcard: Optional[str],
        hardware_config: Optional[Mapping[str, str]],
    ) -> Optional[Dict[str, str]]:
        """Fill the data folder and write config.ini. Returns the config values, None on failure."""
        if not self._copy_userdata_image(avd_folder, target):
            return None

        values: Dict[str, str] = {}
        if not self.set_image_path_properties(target, values):
            logger.error(f"Unable to find non empty system images folders for {target.full_name}")
            return None

        if skin_name is None:
            skin_name = target.default_skin

        if skin_name is not None:
            if NUMERIC_SKIN_SIZE.fullmatch(skin_name):
                # Skin name is an actual screen resolution, the emulator reads it from skin.path
                values[AVD_INI_SKIN_NAME] = skin_name
                values[AVD_INI_SKIN_PATH] = skin_name
            else:
                skin_path = self.get_skin_relative_path(skin_name, target)
                if skin_path is None:
                    return None
                values[AVD_INI_SKIN_PATH] = skin_path
                values[AVD_INI_SKIN_NAME] = skin_name

        if sdcard is not None:
            if os.path.isfile(sdcard):
                # External sdcard, the emulator uses it in place
                values[AVD_INI_SDCARD_PATH] = sdcard
            elif SDCARD_SIZE_PATTERN.fullmatch(sdcard):
                if not self.create_sdcard(sdcard, os.path.join(avd_folder, SDCARD_IMG)):
                    return None
                # Display only, the emulator always looks for sdcard.img
                values[AVD_INI_SDCARD_SIZE] = sdcard
            else:
                logger.error(
                    f"'{sdcard}' is not recognized as a valid sdcard value.\n"
                    "Value should be:\n"
                    "1. path to an sdcard.\n"
                    "2. size of the sdcard to create: <size>[K|M]"
                )
                return None

        if hardware_config:
            for key, value in hardware_config.items():
                if not is_valid_property(key, value):
                    logger.error(f"Invalid hardware property '{key}'='{value}', it cannot be stored in {CONFIG_INI}.")
                    return None
            values.update(hardware_config)

        write_property_file(os.path.join(avd_folder, CONFIG_INI), values)
        return values

    def _copy_userdata_image(self, avd_folder: str, target: Target) -> bool:
        source = os.path.join(target.get_path(PathCategory.IMAGES), USERDATA_IMG)
        if not os.path.exists(source) and not target.is_platform:
            source = os.path.join(target.parent.get_path(PathCategory.IMAGES), USERDATA_IMG)

        if not os.path.exists(source):
            logger.error(f"Unable to find a '{USERDATA_IMG}' file to copy into the AVD folder.")
            return False

        shutil.copyfile(source, os.path.join(avd_folder, USERDATA_IMG))
        logger.debug(f"Copied {source} into {avd_folder}")
        return True

    def _cleanup(self, ini_file: Optional[str], avd_folder: str) -> None:
        if ini_file and os.path.exists(ini_file):
            try:
                os.remove(ini_file)
            except OSError as e:
                logger.error(f"Failed to delete {ini_file}: {e}")

        if os.path.exists(avd_folder):
            shutil.rmtree(avd_folder, ignore_errors=True)
            if os.path.exists(avd_folder):
                logger.error(f"Failed to delete {avd_folder}")

    def _relative_to_sdk(self, path: str) -> str:
        """Return path relative to the SDK location. Raises InvalidTargetPathError if outside."""
        sdk_location = self.sdk.location
        path = os.path.abspath(path)
        if os.path.commonpath([sdk_location, path]) != sdk_location:
            raise InvalidTargetPathError(f"Target location {path} is not inside the SDK {sdk_location}.")
        return os.path.relpath(path, sdk_location)

    def get_image_relative_path(self, target: Target) -> Optional[str]:
        """
        Return the SDK-relative images folder of a target if it holds at least one .img file.

        Raises:
            InvalidTargetPathError: If the images folder is not inside the SDK
        """
        image_path = target.get_path(PathCategory.IMAGES)
        relative_path = self._relative_to_sdk(image_path)

        if os.path.isdir(image_path):
            images = [entry for entry in os.listdir(image_path) if IMAGE_NAME_PATTERN.match(entry)]
            if images:
                return relative_path

        return None

    def set_image_path_properties(self, target: Target, properties: Dict[str, str]) -> bool:
        """
        Set image.sysdir.1 and image.sysdir.2 for a target.

        The target's own images come first. For an add-on the platform images are
        added as a fallback. Returns False when no images folder could be found.
        """
        properties.pop(AVD_INI_IMAGES_1, None)
        properties.pop(AVD_INI_IMAGES_2, None)

        try:
            key = AVD_INI_IMAGES_1

            image_path = self.get_image_relative_path(target)
            if image_path is not None:
                properties[key] = image_path
                key = AVD_INI_IMAGES_2

            parent = target.parent
            if parent is not None:
                image_path = self.get_image_relative_path(parent)
                if image_path is not None:
                    properties[key] = image_path
        except InvalidTargetPathError as e:
            logger.error(str(e))
            return False

        return AVD_INI_IMAGES_1 in properties

    def get_skin_relative_path(self, skin_name: str, target: Target) -> Optional[str]:
        """Return the SDK-relative folder of a skin, looking in the target then its platform."""
        skin = os.path.join(target.get_path(PathCategory.SKINS), skin_name)

        if not os.path.exists(skin) and not target.is_platform:
            skin = os.path.join(target.parent.get_path(PathCategory.SKINS), skin_name)

        if not os.path.exists(skin):
            logger.error(f"Skin '{skin_name}' does not exist.")
            return None

        try:
            return self._relative_to_sdk(skin)
        except InvalidTargetPathError as e:
            logger.error(str(e))
            return None

    def create_sdcard(self, size: str, location: str) -> bool:
        """
        Run mksdcard to create an sdcard image.

        Args:
            size: Size of the card, matching SDCARD_SIZE_PATTERN
            location: Path of the image file to create

        Returns:
            bool: True if the image was created
        """
        if not os.path.isfile(self.mksdcard_path):
            logger.error(f"'{os.path.basename(self.mksdcard_path)}' is missing from the SDK tools folder.")
            return False

        try:
            result = run_tool([self.mksdcard_path, size, location])
        except ToolError as e:
            logger.error(str(e))
        else:
            if result.returncode == 0:
                return True
            for line in result.stderr:
                logger.error(line)

        logger.error("Failed to create the SD card.")
        return False
