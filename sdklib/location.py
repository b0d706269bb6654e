"""Resolution of the user's Android configuration folder."""

import logging
import os

from sdklib.errors import AndroidLocationError

logger = logging.getLogger(__name__)

FOLDER_DOT_ANDROID = ".android"
FOLDER_AVD = "avd"


def _get_home_folder() -> str:
    for env_var in ("ANDROID_SDK_HOME", "HOME", "USERPROFILE"):
        value = os.environ.get(env_var)
        if value and os.path.isdir(value):
            return value

    home = os.path.expanduser("~")
    if home != "~" and os.path.isdir(home):
        return home

    raise AndroidLocationError("Unable to get the home directory")


def get_android_folder() -> str:
    """
    Return the path of the ``.android`` folder, with a trailing separator.

    ``ANDROID_SDK_HOME`` takes precedence over the user's home folder.

    Raises:
        AndroidLocationError: If no home folder can be found
    """
    folder = os.path.join(os.path.abspath(_get_home_folder()), FOLDER_DOT_ANDROID)
    return folder + os.sep


def get_avd_folder() -> str:
    """Return the folder holding the ``<name>.ini`` AVD descriptors."""
    return os.path.join(get_android_folder(), FOLDER_AVD)
