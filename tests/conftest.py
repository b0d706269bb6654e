import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from avd.core.avd_manager import AvdManager
from sdklib.sdk_manager import SdkManager
from tests.avd_test_utils import build_fake_sdk


@pytest.fixture
def sdk_dir(tmp_path):
    return build_fake_sdk(tmp_path)


@pytest.fixture
def sdk(sdk_dir):
    return SdkManager.load(sdk_dir)


@pytest.fixture
def avd_root(tmp_path):
    path = tmp_path / "home" / ".android" / "avd"
    path.mkdir(parents=True)
    return str(path)


@pytest.fixture
def manager(sdk, avd_root):
    return AvdManager(sdk, avd_root_resolver=lambda: avd_root)
