"""Platform and add-on targets installed in an SDK."""

import os
from enum import Enum, auto
from typing import List, Optional, Sequence, Union

from sdklib.config import FD_DATA, FD_DOCS, FD_IMAGES, FD_SAMPLES, FD_SKINS

PLATFORM_HASH_FORMAT = "android-{api_level}"
ADD_ON_HASH_FORMAT = "{vendor}:{name}:{api_level}"


class PathCategory(Enum):
    """Folders a target can be asked for."""

    IMAGES = auto()
    SKINS = auto()
    DATA = auto()
    DOCS = auto()
    SAMPLES = auto()


_FOLDERS = {
    PathCategory.IMAGES: FD_IMAGES,
    PathCategory.SKINS: FD_SKINS,
    PathCategory.DATA: FD_DATA,
    PathCategory.DOCS: FD_DOCS,
    PathCategory.SAMPLES: FD_SAMPLES,
}


class PlatformTarget:
    """A base Android platform, e.g. ``platforms/android-30``."""

    def __init__(
        self,
        location: str,
        api_level: int,
        version_name: str,
        skins: Optional[Sequence[str]] = None,
        default_skin: Optional[str] = None,
    ):
        self.location = os.path.abspath(location)
        self.api_level = api_level
        self.version_name = version_name
        self.skins = list(skins or [])
        self.default_skin = default_skin
        self.name = f"Android {version_name}"
        self.vendor = "Android Open Source Project"

    @property
    def is_platform(self) -> bool:
        return True

    @property
    def parent(self) -> Optional["PlatformTarget"]:
        return None

    @property
    def full_name(self) -> str:
        return self.name

    def get_path(self, category: PathCategory) -> str:
        return os.path.join(self.location, _FOLDERS[category])

    def hash_string(self) -> str:
        return PLATFORM_HASH_FORMAT.format(api_level=self.api_level)

    def __eq__(self, other):
        return isinstance(other, PlatformTarget) and other.api_level == self.api_level

    def __hash__(self):
        return hash(self.hash_string())

    def __repr__(self):
        return f"PlatformTarget({self.hash_string()!r}, location={self.location!r})"


class AddOnTarget:
    """An add-on built on top of a platform. Folders it does not ship come from the platform."""

    def __init__(
        self,
        location: str,
        name: str,
        vendor: str,
        description: str,
        base_platform: PlatformTarget,
        skins: Optional[Sequence[str]] = None,
        default_skin: Optional[str] = None,
    ):
        self.location = os.path.abspath(location)
        self.name = name
        self.vendor = vendor
        self.description = description
        self.base_platform = base_platform
        self.skins = list(skins or [])
        self.default_skin = default_skin

    @property
    def is_platform(self) -> bool:
        return False

    @property
    def parent(self) -> PlatformTarget:
        return self.base_platform

    @property
    def api_level(self) -> int:
        return self.base_platform.api_level

    @property
    def version_name(self) -> str:
        return self.base_platform.version_name

    @property
    def full_name(self) -> str:
        return f"{self.name} ({self.vendor})"

    def get_path(self, category: PathCategory) -> str:
        if category in (PathCategory.IMAGES, PathCategory.SKINS, PathCategory.DOCS):
            return os.path.join(self.location, _FOLDERS[category])

        if category is PathCategory.SAMPLES:
            # Only use the add-on samples when it actually ships some
            samples = os.path.join(self.location, FD_SAMPLES)
            if os.path.isdir(samples) and any(
                os.path.isdir(os.path.join(samples, entry)) for entry in os.listdir(samples)
            ):
                return samples

        return self.base_platform.get_path(category)

    def hash_string(self) -> str:
        return ADD_ON_HASH_FORMAT.format(vendor=self.vendor, name=self.name, api_level=self.api_level)

    def __eq__(self, other):
        return isinstance(other, AddOnTarget) and other.hash_string() == self.hash_string()

    def __hash__(self):
        return hash(self.hash_string())

    def __repr__(self):
        return f"AddOnTarget({self.hash_string()!r}, location={self.location!r})"


def list_skins(target_location: str) -> List[str]:
    """Return the sorted skin folder names found under a target's skins folder."""
    skins_dir = os.path.join(target_location, FD_SKINS)
    if not os.path.isdir(skins_dir):
        return []
    return sorted(entry for entry in os.listdir(skins_dir) if os.path.isdir(os.path.join(skins_dir, entry)))


Target = Union[PlatformTarget, AddOnTarget]
