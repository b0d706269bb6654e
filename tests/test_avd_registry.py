"""Test loading AVDs from disk and the registry list."""

import os
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from avd.core.avd_info import AvdInfo, AvdStatus
from avd.core.avd_registry import AvdRegistry
from sdklib.errors import AndroidLocationError
from tests.avd_test_utils import ADDON_HASH, write_avd, write_file, write_properties, valid_config


def snapshot(avds):
    return sorted((avd.name, avd.status) for avd in avds)


class TestLoadAll:
    def test_valid_avd(self, sdk, avd_root):
        data_path = write_avd(avd_root, "Pixel", config=valid_config())

        registry = AvdRegistry(sdk, lambda: avd_root)
        avd = registry.find("Pixel")

        assert avd.status is AvdStatus.OK
        assert avd.path == data_path
        assert avd.target is sdk.get_target_from_hash_string("android-30")
        assert avd.properties["hw.ramSize"] == "512"

    def test_addon_avd_with_both_image_dirs(self, sdk, avd_root):
        config = valid_config(**{"image.sysdir.1": "add-ons/google_apis-30/images"})
        config["image.sysdir.2"] = "platforms/android-30/images"
        write_avd(avd_root, "Maps", target_hash=ADDON_HASH, config=config)

        registry = AvdRegistry(sdk, lambda: avd_root)
        assert registry.find("Maps").status is AvdStatus.OK

    def test_missing_path(self, sdk, avd_root):
        write_avd(avd_root, "NoPath", config=valid_config(), write_path=False)

        avd = AvdRegistry(sdk, lambda: avd_root).find("NoPath")
        assert avd.status is AvdStatus.ERROR_PATH
        assert avd.path is None
        assert dict(avd.properties) == {}

    def test_missing_config(self, sdk, avd_root):
        write_avd(avd_root, "NoConfig")
        assert AvdRegistry(sdk, lambda: avd_root).find("NoConfig").status is AvdStatus.ERROR_CONFIG

    def test_missing_target_hash(self, sdk, avd_root):
        write_avd(avd_root, "NoTarget", target_hash=None, config=valid_config())
        assert AvdRegistry(sdk, lambda: avd_root).find("NoTarget").status is AvdStatus.ERROR_TARGET_HASH

    def test_unknown_target(self, sdk, avd_root):
        write_avd(avd_root, "OldTarget", target_hash="android-3", config=valid_config())

        avd = AvdRegistry(sdk, lambda: avd_root).find("OldTarget")
        assert avd.status is AvdStatus.ERROR_TARGET
        assert avd.target is None
        assert not avd.has_target
        assert avd.target_hash == "android-3"

    def test_unparsable_config(self, sdk, avd_root):
        write_avd(avd_root, "Garbage", raw_config="hw.ramSize=512\n!!! not a property\n")
        assert AvdRegistry(sdk, lambda: avd_root).find("Garbage").status is AvdStatus.ERROR_PROPERTIES

    def test_missing_image_dir(self, sdk, avd_root):
        write_avd(avd_root, "OldImages", config=valid_config(**{"image.sysdir.1": "platforms/android-3/images"}))
        assert AvdRegistry(sdk, lambda: avd_root).find("OldImages").status is AvdStatus.ERROR_IMAGE_DIR

    def test_broken_descriptor_does_not_hide_other_avds(self, sdk, avd_root):
        write_avd(avd_root, "Good", config=valid_config())
        write_file(os.path.join(avd_root, "Bad.ini"), "no equal sign here\n")

        registry = AvdRegistry(sdk, lambda: avd_root)
        assert snapshot(registry.all()) == [("Bad", AvdStatus.ERROR_PATH), ("Good", AvdStatus.OK)]

    def test_ini_extension_is_case_insensitive(self, sdk, avd_root):
        write_avd(avd_root, "Upper", config=valid_config())
        os.rename(os.path.join(avd_root, "Upper.ini"), os.path.join(avd_root, "Upper.INI"))

        registry = AvdRegistry(sdk, lambda: avd_root)
        assert [avd.name for avd in registry.all()] == ["Upper"]

    def test_only_ini_files_are_loaded(self, sdk, avd_root):
        write_avd(avd_root, "Pixel", config=valid_config())
        os.makedirs(os.path.join(avd_root, "folder.ini"))
        write_file(os.path.join(avd_root, "notes.txt"), "hello")

        registry = AvdRegistry(sdk, lambda: avd_root)
        assert [avd.name for avd in registry.all()] == ["Pixel"]

    def test_missing_root_is_created(self, sdk, tmp_path):
        avd_root = str(tmp_path / "fresh" / "avd")

        registry = AvdRegistry(sdk, lambda: avd_root)
        assert registry.all() == []
        assert os.path.isdir(avd_root)

    def test_root_is_a_file(self, sdk, tmp_path):
        avd_root = write_file(tmp_path / "avd", "not a folder")

        with pytest.raises(AndroidLocationError, match="is not a valid folder"):
            AvdRegistry(sdk, lambda: avd_root)

    def test_unresolvable_root(self, sdk):
        def resolver():
            raise AndroidLocationError("Unable to get the home directory")

        with pytest.raises(AndroidLocationError):
            AvdRegistry(sdk, resolver)


class TestQueries:
    @pytest.fixture
    def registry(self, sdk, avd_root):
        write_avd(avd_root, "Good", config=valid_config())
        write_avd(avd_root, "Broken", config=valid_config(**{"image.sysdir.1": "missing"}))
        return AvdRegistry(sdk, lambda: avd_root)

    def test_valid_and_broken(self, registry):
        assert [avd.name for avd in registry.valid()] == ["Good"]
        assert [avd.name for avd in registry.broken()] == ["Broken"]

    def test_find_is_case_sensitive(self, registry):
        assert registry.find("Good") is not None
        assert registry.find("good") is None
        assert registry.find("Nope") is None

    def test_find_valid_only(self, registry):
        assert registry.find("Broken", valid_only=True) is None
        assert registry.find("Broken").status is AvdStatus.ERROR_IMAGE_DIR

    def test_snapshots_are_copies(self, registry):
        registry.all().clear()
        registry.valid().clear()
        registry.broken().clear()

        assert len(registry.all()) == 2
        assert len(registry.valid()) == 1
        assert len(registry.broken()) == 1

    def test_mutations_invalidate_caches(self, registry, sdk):
        good = registry.find("Good")
        assert len(registry.valid()) == 1

        extra = AvdInfo("Extra", "/tmp/extra.avd", "android-30", None, {}, AvdStatus.OK)
        registry.add(extra)
        assert [avd.name for avd in registry.valid()] == ["Good", "Extra"]

        broken_good = AvdInfo(good.name, good.path, good.target_hash, good.target, good.properties, AvdStatus.ERROR_IMAGE_DIR)
        registry.replace(good, broken_good)
        assert [avd.name for avd in registry.valid()] == ["Extra"]
        assert sorted(avd.name for avd in registry.broken()) == ["Broken", "Good"]

        assert registry.remove(extra)
        assert registry.valid() == []
        assert not registry.remove(extra)

    def test_replace_keeps_position(self, registry):
        names_before = [avd.name for avd in registry.all()]
        first = registry.all()[0]

        registry.replace(first, AvdInfo("Renamed", first.path, first.target_hash, first.target, first.properties, first.status))

        assert [avd.name for avd in registry.all()] == ["Renamed"] + names_before[1:]

    def test_add_or_replace_by_name(self, registry):
        good = registry.find("Good")
        newer = AvdInfo("Good", "/tmp/new.avd", good.target_hash, good.target, {}, AvdStatus.ERROR_IMAGE_DIR)

        assert registry.add_or_replace(newer) is good
        assert [avd.name for avd in registry.all()] == ["Broken", "Good"]
        assert registry.find("Good") is newer
        assert registry.valid() == []

        extra = AvdInfo("Extra", "/tmp/extra.avd", "android-30", None, {}, AvdStatus.OK)
        assert registry.add_or_replace(extra) is None
        assert [avd.name for avd in registry.all()] == ["Broken", "Good", "Extra"]

    def test_concurrent_mutations(self, registry):
        num_threads = 20

        def add_and_query(thread_id):
            avd = AvdInfo(f"Thread_{thread_id}", f"/tmp/{thread_id}.avd", "android-30", None, {}, AvdStatus.OK)
            registry.add(avd)
            registry.valid()
            registry.broken()
            return avd

        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            added = list(executor.map(add_and_query, range(num_threads)))

        assert len(registry.all()) == 2 + num_threads
        assert len(registry.valid()) == 1 + num_threads

        threads = [threading.Thread(target=registry.remove, args=(avd,)) for avd in added]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert [avd.name for avd in registry.valid()] == ["Good"]


class TestReload:
    def test_reload_is_idempotent(self, sdk, avd_root):
        write_avd(avd_root, "Good", config=valid_config())
        write_avd(avd_root, "NoConfig")
        registry = AvdRegistry(sdk, lambda: avd_root)

        registry.reload()
        first = snapshot(registry.all())
        registry.reload()
        second = snapshot(registry.all())

        assert first == second == [("Good", AvdStatus.OK), ("NoConfig", AvdStatus.ERROR_CONFIG)]

    def test_reload_picks_up_changes(self, sdk, avd_root):
        registry = AvdRegistry(sdk, lambda: avd_root)
        assert registry.all() == []

        write_avd(avd_root, "Late", config=valid_config())
        registry.reload()

        assert [avd.name for avd in registry.valid()] == ["Late"]

    def test_failed_reload_keeps_previous_content(self, sdk, avd_root):
        write_avd(avd_root, "Good", config=valid_config())
        write_avd(avd_root, "Broken", target_hash=None, config=valid_config())

        state = {"fail": False}

        def resolver():
            if state["fail"]:
                raise AndroidLocationError("Unable to get the home directory")
            return avd_root

        registry = AvdRegistry(sdk, resolver)
        before = registry.all()

        state["fail"] = True
        with pytest.raises(AndroidLocationError):
            registry.reload()

        assert registry.all() == before
        assert [avd.name for avd in registry.valid()] == ["Good"]

    def test_reload_fails_when_root_becomes_a_file(self, sdk, tmp_path):
        avd_root = str(tmp_path / "avd")
        os.makedirs(avd_root)
        write_avd(avd_root, "Good", config=valid_config())
        registry = AvdRegistry(sdk, lambda: avd_root)

        moved_root = str(tmp_path / "avd_moved")
        os.rename(avd_root, moved_root)
        write_properties(avd_root, {"not": "a folder"})

        with pytest.raises(AndroidLocationError):
            registry.reload()
        assert [avd.name for avd in registry.all()] == ["Good"]
