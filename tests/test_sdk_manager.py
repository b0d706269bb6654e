"""Test target discovery in a fake SDK."""

import os
import shutil

from sdklib.sdk_manager import SdkManager
from sdklib.targets import AddOnTarget, PathCategory, PlatformTarget
from tests.avd_test_utils import ADDON_HASH, PLATFORM_HASH, build_fake_sdk, write_file, write_properties


class TestSdkManager:
    def test_load_finds_platform_and_addon(self, sdk):
        hashes = [target.hash_string() for target in sdk.targets]
        assert hashes == [PLATFORM_HASH, ADDON_HASH]

    def test_platform_target(self, sdk, sdk_dir):
        platform = sdk.get_target_from_hash_string(PLATFORM_HASH)
        assert isinstance(platform, PlatformTarget)
        assert platform.is_platform
        assert platform.parent is None
        assert platform.api_level == 30
        assert platform.version_name == "11"
        assert platform.skins == ["HVGA", "WVGA800"]
        assert platform.default_skin == "HVGA"
        assert platform.get_path(PathCategory.IMAGES) == os.path.join(sdk_dir, "platforms", "android-30", "images")

    def test_addon_target(self, sdk, sdk_dir):
        addon = sdk.get_target_from_hash_string(ADDON_HASH)
        platform = sdk.get_target_from_hash_string(PLATFORM_HASH)
        assert isinstance(addon, AddOnTarget)
        assert not addon.is_platform
        assert addon.parent is platform
        assert addon.full_name == "Google APIs (Google Inc.)"
        assert addon.default_skin == "GoogleSkin"
        assert addon.get_path(PathCategory.IMAGES) == os.path.join(sdk_dir, "add-ons", "google_apis-30", "images")
        # Folders the add-on does not own come from the platform
        assert addon.get_path(PathCategory.DATA) == platform.get_path(PathCategory.DATA)
        assert addon.get_path(PathCategory.SAMPLES) == platform.get_path(PathCategory.SAMPLES)

    def test_addon_samples_used_when_present(self, sdk, sdk_dir):
        write_file(os.path.join(sdk_dir, "add-ons", "google_apis-30", "samples", "MapsDemo", "README"), "")
        addon = sdk.get_target_from_hash_string(ADDON_HASH)
        assert addon.get_path(PathCategory.SAMPLES) == os.path.join(sdk_dir, "add-ons", "google_apis-30", "samples")

    def test_unknown_hash(self, sdk):
        assert sdk.get_target_from_hash_string("android-99") is None
        assert sdk.get_target_from_hash_string(None) is None
        assert sdk.get_target_from_hash_string("") is None

    def test_invalid_entries_are_skipped(self, tmp_path):
        sdk_dir = build_fake_sdk(tmp_path)
        write_properties(os.path.join(sdk_dir, "platforms", "android-broken", "build.prop"), {"ro.build.version.sdk": "x"})
        os.makedirs(os.path.join(sdk_dir, "platforms", "android-empty"))
        write_properties(
            os.path.join(sdk_dir, "add-ons", "orphan", "manifest.ini"),
            {"name": "Orphan", "vendor": "Nobody", "api": "12"},
        )

        sdk = SdkManager.load(sdk_dir)
        assert [target.hash_string() for target in sdk.targets] == [PLATFORM_HASH, ADDON_HASH]

    def test_empty_sdk(self, tmp_path):
        sdk = SdkManager.load(str(tmp_path))
        assert sdk.targets == []
        assert sdk.location == str(tmp_path)

    def test_targets_returns_copy(self, sdk):
        sdk.targets.clear()
        assert len(sdk.targets) == 2

    def test_addon_without_skins_uses_platform_default_skin(self, tmp_path):
        sdk_dir = build_fake_sdk(tmp_path)
        shutil.rmtree(os.path.join(sdk_dir, "add-ons", "google_apis-30", "skins"))

        addon = SdkManager.load(sdk_dir).get_target_from_hash_string(ADDON_HASH)
        assert addon.skins == []
        assert addon.default_skin == "HVGA"
