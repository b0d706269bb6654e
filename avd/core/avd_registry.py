"""
Thread safe registry of the AVDs found in the AVD root folder.

The registry owns the only list of AvdInfo values. Every query returns a copy
and every access, read or write, holds the same lock.
"""

import logging
import os
import threading
from typing import Callable, List, Optional, Tuple

from avd.core.avd_info import (
    AVD_INFO_PATH,
    AVD_INFO_TARGET,
    INI_NAME_PATTERN,
    AvdInfo,
    get_config_file,
    get_name_from_ini_file,
)
from avd.core.avd_validator import check_image_sysdirs, compute_status
from sdklib.errors import AndroidLocationError, PropertyFileError
from sdklib.location import get_avd_folder
from sdklib.sdk_manager import SdkManager
from sdklib.utils.property_files import parse_property_file

logger = logging.getLogger(__name__)


class AvdRegistry:
    """Loads AVD descriptors and keeps the in-memory list of AVDs."""

    def __init__(self, sdk: SdkManager, avd_root_resolver: Callable[[], str] = get_avd_folder):
        self.sdk = sdk
        self._avd_root_resolver = avd_root_resolver

        self._lock = threading.Lock()
        self._all_avds: List[AvdInfo] = []
        self._valid_avds: Optional[Tuple[AvdInfo, ...]] = None
        self._broken_avds: Optional[Tuple[AvdInfo, ...]] = None

        self._all_avds.extend(self.load_all())

    @property
    def avd_root(self) -> str:
        """
        Folder holding the <name>.ini descriptors.

        Raises:
            AndroidLocationError: If the folder cannot be resolved
        """
        return self._avd_root_resolver()

    def _list_ini_files(self) -> List[str]:
        avd_root = self.avd_root

        if os.path.isfile(avd_root):
            raise AndroidLocationError(f"{avd_root} is not a valid folder.")

        if not os.path.exists(avd_root):
            # Folder is not there, create it so later operations can use it
            try:
                os.makedirs(avd_root, exist_ok=True)
            except OSError as e:
                raise AndroidLocationError(f"Unable to create {avd_root}: {e}") from e
            logger.info(f"Created AVD folder {avd_root}")
            return []

        try:
            entries = sorted(os.listdir(avd_root))
        except OSError as e:
            raise AndroidLocationError(f"Unable to list {avd_root}: {e}") from e

        return [
            os.path.join(avd_root, entry)
            for entry in entries
            if INI_NAME_PATTERN.match(entry) and os.path.isfile(os.path.join(avd_root, entry))
        ]

    def parse_avd_info(self, ini_path: str) -> AvdInfo:
        """
        Build an AvdInfo from a descriptor file.

        Never raises for a broken AVD, the problem is recorded in the status.
        """
        try:
            descriptor = parse_property_file(ini_path)
        except PropertyFileError as e:
            logger.warning(f"Failed to parse AVD descriptor: {e}")
            descriptor = {}

        avd_path = descriptor.get(AVD_INFO_PATH) or None
        target_hash = descriptor.get(AVD_INFO_TARGET) or None
        target = self.sdk.get_target_from_hash_string(target_hash)

        config_present = False
        properties = None
        if avd_path:
            config_file = get_config_file(avd_path)
            config_present = os.path.isfile(config_file)
            if config_present:
                try:
                    properties = parse_property_file(config_file)
                except PropertyFileError as e:
                    logger.warning(f"Failed to parse AVD config: {e}")

        status = compute_status(
            avd_path,
            config_present,
            target_hash,
            target,
            properties,
            check_image_sysdirs(self.sdk.location, properties),
        )

        name = get_name_from_ini_file(ini_path)
        logger.debug(f"Loaded AVD '{name}' with status {status.name}")
        return AvdInfo(name, avd_path, target_hash, target, properties or {}, status)

    def load_all(self) -> List[AvdInfo]:
        """
        Parse every descriptor in the AVD root folder.

        Raises:
            AndroidLocationError: If the AVD root folder cannot be resolved or created
        """
        return [self.parse_avd_info(ini_path) for ini_path in self._list_ini_files()]

    def reload(self) -> None:
        """
        Rebuild the list from disk.

        The new list is built first so that a failure leaves the current
        content untouched.

        Raises:
            AndroidLocationError: If the AVD root folder cannot be resolved or created
        """
        avds = self.load_all()

        with self._lock:
            self._all_avds = avds
            self._invalidate_caches()

        logger.info(f"Reloaded {len(avds)} AVD(s)")

    def all(self) -> List[AvdInfo]:
        with self._lock:
            return list(self._all_avds)

    def valid(self) -> List[AvdInfo]:
        with self._lock:
            if self._valid_avds is None:
                self._valid_avds = tuple(avd for avd in self._all_avds if avd.is_valid)
            return list(self._valid_avds)

    def broken(self) -> List[AvdInfo]:
        with self._lock:
            if self._broken_avds is None:
                self._broken_avds = tuple(avd for avd in self._all_avds if not avd.is_valid)
            return list(self._broken_avds)

    def find(self, name: str, valid_only: bool = False) -> Optional[AvdInfo]:
        """Return the AVD with exactly this name, or None."""
        avds = self.valid() if valid_only else self.all()
        for avd in avds:
            if avd.name == name:
                return avd
        return None

    def add(self, avd: AvdInfo) -> None:
        with self._lock:
            self._all_avds.append(avd)
            self._invalidate_caches()

    def add_or_replace(self, avd: AvdInfo) -> Optional[AvdInfo]:
        """Swap in avd for the entry with the same name, or append it. Returns the replaced entry."""
        with self._lock:
            for index, existing in enumerate(self._all_avds):
                if existing.name == avd.name:
                    self._all_avds[index] = avd
                    break
            else:
                existing = None
                self._all_avds.append(avd)
            self._invalidate_caches()
            return existing

    def remove(self, avd: AvdInfo) -> bool:
        """Remove an AVD, returns True if it was present."""
        with self._lock:
            try:
                self._all_avds.remove(avd)
            except ValueError:
                return False
            self._invalidate_caches()
            return True

    def replace(self, old_avd: AvdInfo, new_avd: AvdInfo) -> None:
        """Swap an AVD for its new value, keeping its position. Appends if old_avd is gone."""
        with self._lock:
            try:
                index = self._all_avds.index(old_avd)
            except ValueError:
                self._all_avds.append(new_avd)
            else:
                self._all_avds[index] = new_avd
            self._invalidate_caches()

    def __len__(self):
        with self._lock:
            return len(self._all_avds)

    def _invalidate_caches(self) -> None:
        self._valid_avds = None
        self._broken_avds = None
