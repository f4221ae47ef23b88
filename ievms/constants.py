"""Global constants and path configuration for ievms."""

from __future__ import annotations

import os
from pathlib import Path

IEVMS_VERSION = "0.4.0"

DEFAULT_INSTALL_PATH = Path.home() / ".ievms"
DEFAULT_IMAGES_PATH = Path(__file__).with_name("images.yaml")
DEFAULT_VERSIONS = ("8", "9", "10", "11", "EDGE")
SUPPORTED_KERNELS = {"Darwin", "Linux"}

TRUTHY = {"1", "true", "yes", "on"}

CATALOG_URL = "https://developer.microsoft.com/en-us/microsoft-edge/api/tools/vms/"
CATALOG_SOURCES = {"static", "remote"}

VBOX_DOWNLOAD_INDEX = "http://download.virtualbox.org/virtualbox/"
VBOX_HASHES_URL = "https://www.virtualbox.org/download/hashes/{release}/MD5SUMS"
EXT_PACK_NAME = "Oracle VM VirtualBox Extension Pack"
EXT_PACK_ARCHIVE = "Oracle_VM_VirtualBox_Extension_Pack-{release}.vbox-extpack"

UNAR_URL = "https://cdn.theunarchiver.com/downloads/unarMac.zip"
UNAR_MD5 = "91796924b1b21ee586ed904b319bb447"

# Guest additions ISO shipped with the VirtualBox install, per host kernel.
GUEST_ADDITIONS_ISO = {
    "Darwin": Path("/Applications/VirtualBox.app/Contents/MacOS/VBoxGuestAdditions.iso"),
    "Linux": Path("/usr/share/virtualbox/VBoxGuestAdditions.iso"),
}

SHARED_FOLDER_NAME = "ievms"
SNAPSHOT_NAME = "clean"
SNAPSHOT_DESCRIPTION = "The initial VM state"
EXTRADATA_KEY = "ievms"
DVD_CONTROLLER = "IDE Controller"

ARCHIVE_SUFFIX = ".VirtualBox.zip"
IMAGE_SUFFIX = ".ova"

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}
