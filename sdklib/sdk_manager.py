"""Catalog of the targets installed in an SDK location."""

import logging
import os
from typing import Dict, List, Optional, Sequence

from sdklib.config import FD_ADDONS, FD_PLATFORMS
from sdklib.errors import PropertyFileError
from sdklib.targets import AddOnTarget, PlatformTarget, Target, list_skins
from sdklib.utils.property_files import parse_property_file

logger = logging.getLogger(__name__)

PLATFORM_PROP_FILE = "build.prop"
PLATFORM_PROP_API = "ro.build.version.sdk"
PLATFORM_PROP_VERSION = "ro.build.version.release"

ADDON_MANIFEST_FILE = "manifest.ini"
ADDON_NAME = "name"
ADDON_VENDOR = "vendor"
ADDON_DESCRIPTION = "description"
ADDON_API = "api"

DEFAULT_SKIN_KEY = "default.skin"


class SdkManager:
    """
    Holds the location of an SDK and the targets it provides.

    Targets are looked up by their hash string (``android-30`` for platforms,
    ``<vendor>:<name>:<api>`` for add-ons).
    """

    def __init__(self, location: str, targets: Optional[Sequence[Target]] = None):
        self.location = os.path.abspath(location)
        self._targets: List[Target] = list(targets or [])

    @property
    def targets(self) -> List[Target]:
        return list(self._targets)

    def get_target_from_hash_string(self, hash_string: Optional[str]) -> Optional[Target]:
        if not hash_string:
            return None

        for target in self._targets:
            if target.hash_string() == hash_string:
                return target
        return None

    @classmethod
    def load(cls, location: str) -> "SdkManager":
        """Scan the platforms and add-ons folders of an SDK."""
        location = os.path.abspath(location)
        platforms = _load_platforms(os.path.join(location, FD_PLATFORMS))
        addons = _load_addons(os.path.join(location, FD_ADDONS), platforms)

        targets: List[Target] = sorted(platforms.values(), key=lambda t: t.api_level)
        targets.extend(addons)

        logger.info(f"Found {len(platforms)} platform(s) and {len(addons)} add-on(s) in {location}")
        return cls(location, targets)


def _list_dirs(folder: str) -> List[str]:
    if not os.path.isdir(folder):
        return []
    return sorted(
        os.path.join(folder, entry) for entry in os.listdir(folder) if os.path.isdir(os.path.join(folder, entry))
    )


def _pick_default_skin(properties: Dict[str, str], skins: List[str]) -> Optional[str]:
    default_skin = properties.get(DEFAULT_SKIN_KEY)
    if default_skin:
        return default_skin
    return skins[0] if skins else None


def _load_platforms(platforms_dir: str) -> Dict[int, PlatformTarget]:
    platforms: Dict[int, PlatformTarget] = {}
    for platform_dir in _list_dirs(platforms_dir):
        prop_file = os.path.join(platform_dir, PLATFORM_PROP_FILE)
        if not os.path.isfile(prop_file):
            logger.warning(f"Ignoring platform '{platform_dir}': {PLATFORM_PROP_FILE} is missing")
            continue

        try:
            properties = parse_property_file(prop_file)
            api_level = int(properties[PLATFORM_PROP_API])
        except (PropertyFileError, KeyError, ValueError) as e:
            logger.warning(f"Ignoring platform '{platform_dir}': {e}")
            continue

        skins = list_skins(platform_dir)
        platforms[api_level] = PlatformTarget(
            platform_dir,
            api_level,
            properties.get(PLATFORM_PROP_VERSION, str(api_level)),
            skins=skins,
            default_skin=_pick_default_skin(properties, skins),
        )
    return platforms


def _load_addons(addons_dir: str, platforms: Dict[int, PlatformTarget]) -> List[AddOnTarget]:
    addons: List[AddOnTarget] = []
    for addon_dir in _list_dirs(addons_dir):
        manifest = os.path.join(addon_dir, ADDON_MANIFEST_FILE)
        if not os.path.isfile(manifest):
            logger.warning(f"Ignoring add-on '{addon_dir}': {ADDON_MANIFEST_FILE} is missing")
            continue

        try:
            properties = parse_property_file(manifest)
            name = properties[ADDON_NAME]
            vendor = properties[ADDON_VENDOR]
            api_level = int(properties[ADDON_API])
        except (PropertyFileError, KeyError, ValueError) as e:
            logger.warning(f"Ignoring add-on '{addon_dir}': {e}")
            continue

        base_platform = platforms.get(api_level)
        if base_platform is None:
            logger.warning(f"Ignoring add-on '{addon_dir}': unable to find base platform with API level {api_level}")
            continue

        skins = list_skins(addon_dir)
        addons.append(
            AddOnTarget(
                addon_dir,
                name,
                vendor,
                properties.get(ADDON_DESCRIPTION, ""),
                base_platform,
                skins=skins,
                default_skin=_pick_default_skin(properties, skins) or base_platform.default_skin,
            )
        )
    return addons
