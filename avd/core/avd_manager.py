"""
Android Virtual Device manager.

Creates, deletes, moves and repairs AVDs. Every operation changes the files
first and then swaps the matching entry of the AvdRegistry. The registry lock
is only held for that swap, never during file I/O.
"""

import dataclasses
import logging
import os
import shutil
from typing import Callable, List, Mapping, Optional, Tuple

from avd.core.avd_creator import AvdCreator, write_avd_ini_file
from avd.core.avd_info import (
    AVD_INI_IMAGES_1,
    AVD_INI_IMAGES_2,
    AvdInfo,
    AvdStatus,
    Target,
    get_config_file,
    get_ini_file,
)
from avd.core.avd_registry import AvdRegistry
from avd.core.avd_validator import check_image_sysdirs, compute_status
from avd.core.status_messages import get_error_message
from sdklib.errors import AndroidLocationError
from sdklib.location import get_avd_folder
from sdklib.logging_config import AvdLogContext
from sdklib.sdk_manager import SdkManager
from sdklib.utils.property_files import write_property_file

logger = logging.getLogger(__name__)


class AvdManager:
    """
    Manages the Android Virtual Devices of one SDK.

    The AVD list is loaded when the manager is built. Creating a manager raises
    AndroidLocationError if the AVD folder cannot be resolved or created.
    """

    def __init__(
        self,
        sdk: SdkManager,
        avd_root_resolver: Callable[[], str] = get_avd_folder,
        mksdcard_path: Optional[str] = None,
        log_dir: Optional[str] = None,
    ):
        self.sdk = sdk
        self.log_dir = log_dir
        self.registry = AvdRegistry(sdk, avd_root_resolver)
        self.avd_creator = AvdCreator(sdk, self.registry, mksdcard_path)

        logger.info(f"AvdManager initialized with SDK {sdk.location}, {len(self.registry)} AVD(s) found")

    def get_all_avds(self) -> List[AvdInfo]:
        return self.registry.all()

    def get_valid_avds(self) -> List[AvdInfo]:
        return self.registry.valid()

    def get_broken_avds(self) -> List[AvdInfo]:
        return self.registry.broken()

    def get_avd(self, name: str, valid_only: bool = False) -> Optional[AvdInfo]:
        return self.registry.find(name, valid_only)

    def reload_avds(self) -> None:
        """Reload the AVD list. On AndroidLocationError the current list is kept."""
        self.registry.reload()

    def get_error_message(self, avd: AvdInfo) -> Optional[str]:
        try:
            avd_root = self.registry.avd_root
        except AndroidLocationError:
            return "Unable to get HOME folder."
        return get_error_message(avd, avd_root)

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
        """Create a new AVD. See AvdCreator.create_avd."""
        with AvdLogContext(name, self.log_dir):
            return self.avd_creator.create_avd(
                avd_folder,
                name,
                target,
                skin_name=skin_name,
                sdcard=sdcard,
                hardware_config=hardware_config,
                remove_previous=remove_previous,
            )

    def delete_avd(self, avd: AvdInfo) -> Tuple[bool, str]:
        """
        Delete the files of an AVD and remove it from the list.

        Also works for broken AVDs: whatever exists of the descriptor and the
        data folder is removed. The AVD leaves the list even if some files
        could not be deleted.

        Returns:
            Tuple[bool, str]: (success, message)
        """
        with AvdLogContext(avd.name, self.log_dir):
            try:
                avd_root = self.registry.avd_root
            except AndroidLocationError as e:
                logger.error(f"Unable to locate the AVD folder: {e}")
                return False, str(e)

            error = False

            ini_file = avd.get_ini_file(avd_root)
            if os.path.exists(ini_file):
                logger.warning(f"Deleting file {ini_file}")
                try:
                    os.remove(ini_file)
                except OSError as e:
                    logger.error(f"Failed to delete {ini_file}: {e}")
                    error = True

            if avd.path and os.path.exists(avd.path):
                logger.warning(f"Deleting folder {avd.path}")
                try:
                    shutil.rmtree(avd.path)
                except OSError as e:
                    logger.error(f"Failed to delete {avd.path}: {e}")
                    error = True

            self.registry.remove(avd)

            if error:
                message = f"AVD '{avd.name}' deleted with errors. See warnings above."
                logger.warning(message)
                return False, message

            message = f"AVD '{avd.name}' deleted."
            logger.info(message)
            return True, message

    def move_avd(
        self, avd: AvdInfo, new_name: Optional[str] = None, new_path: Optional[str] = None
    ) -> Tuple[bool, str]:
        """
        Move the data folder and/or rename an AVD.

        The caller makes sure new_name and new_path are not used by another AVD.
        The folder move is done first, then the rename. Each one updates the
        list only once its files are changed.

        Args:
            avd: The AVD to move
            new_name: New name of the AVD, if any
            new_path: New data folder of the AVD, if any

        Returns:
            Tuple[bool, str]: (success, message)
        """
        with AvdLogContext(avd.name, self.log_dir):
            try:
                avd_root = self.registry.avd_root
            except AndroidLocationError as e:
                logger.error(f"Unable to locate the AVD folder: {e}")
                return False, str(e)

            current = avd

            if new_path is not None:
                success, message, current = self._move_data_folder(current, new_path, avd_root)
                if not success:
                    return False, message

            if new_name is not None:
                success, message, current = self._rename_ini_file(current, new_name, avd_root)
                if not success:
                    return False, message

            message = f"AVD '{avd.name}' moved."
            logger.info(message)
            return True, message

    def _move_data_folder(self, avd: AvdInfo, new_path: str, avd_root: str) -> Tuple[bool, str, AvdInfo]:
        new_path = os.path.abspath(new_path)
        if not avd.path:
            message = f"AVD '{avd.name}' has no data folder to move."
            logger.error(message)
            return False, message, avd

        logger.warning(f"Moving '{avd.path}' to '{new_path}'.")
        try:
            os.rename(avd.path, new_path)
        except OSError as e:
            message = f"Failed to move '{avd.path}' to '{new_path}'."
            logger.error(f"{message} {e}")
            return False, message, avd

        try:
            write_avd_ini_file(avd.get_ini_file(avd_root), new_path, avd.target_hash)
        except OSError as e:
            message = f"Failed to update {avd.get_ini_file(avd_root)}: {e}"
            logger.error(message)
            # Put the folder back so the descriptor still matches it
            try:
                os.rename(new_path, avd.path)
            except OSError as restore_error:
                logger.error(f"Failed to move '{new_path}' back to '{avd.path}': {restore_error}")
            return False, message, avd

        moved = dataclasses.replace(avd, path=new_path)
        self.registry.replace(avd, moved)
        return True, "", moved

    def _rename_ini_file(self, avd: AvdInfo, new_name: str, avd_root: str) -> Tuple[bool, str, AvdInfo]:
        old_ini_file = avd.get_ini_file(avd_root)
        new_ini_file = get_ini_file(avd_root, new_name)

        logger.warning(f"Moving '{old_ini_file}' to '{new_ini_file}'.")
        try:
            os.rename(old_ini_file, new_ini_file)
        except OSError as e:
            message = f"Failed to move '{old_ini_file}' to '{new_ini_file}'."
            logger.error(f"{message} {e}")
            return False, message, avd

        renamed = dataclasses.replace(avd, name=new_name)
        self.registry.replace(avd, renamed)
        return True, "", renamed

    def update_avd(self, name: str) -> Tuple[bool, str]:
        """
        Recompute the system image folders of an AVD and rewrite its config.ini.

        Meant for AVDs whose image.sysdir values no longer point to existing
        folders. When no image folder can be found the new config is still
        written and the AVD stays in ERROR_IMAGE_DIR.

        Returns:
            Tuple[bool, str]: (success, message)
        """
        with AvdLogContext(name, self.log_dir):
            avd = self.registry.find(name)
            if avd is None:
                message = f"There is no Android Virtual Device named '{name}'."
                logger.error(message)
                return False, message

            if avd.path is None or avd.target is None or avd.status is AvdStatus.ERROR_PROPERTIES:
                message = f"AVD '{name}' cannot be updated: {self.get_error_message(avd)}"
                logger.error(message)
                return False, message

            properties = dict(avd.properties)

            if self.avd_creator.set_image_path_properties(avd.target, properties):
                for key in (AVD_INI_IMAGES_1, AVD_INI_IMAGES_2):
                    if key in properties:
                        logger.info(f"Updated '{key}' with value '{properties[key]}'")
            else:
                logger.error(f"Unable to find non empty system images folders for {name}")

            config_file = get_config_file(avd.path)
            try:
                write_property_file(config_file, properties)
            except OSError as e:
                message = f"Failed to write {config_file}: {e}"
                logger.error(message)
                return False, message

            status = compute_status(
                avd.path,
                True,
                avd.target_hash,
                avd.target,
                properties,
                check_image_sysdirs(self.sdk.location, properties),
            )
            self.registry.replace(
                avd, AvdInfo(name, avd.path, avd.target_hash, avd.target, properties, status)
            )

            if status is AvdStatus.OK:
                return True, f"AVD '{name}' updated."
            return True, f"AVD '{name}' updated, status is {status.name}."
