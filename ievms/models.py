"""Data models for ievms."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ievms.constants import IEVMS_VERSION


class ImageId(str, Enum):
    """The closed set of requestable browser images."""

    IE8 = "8"
    IE9 = "9"
    IE10 = "10"
    IE11 = "11"
    EDGE = "EDGE"

    @classmethod
    def tokens(cls) -> List[str]:
        return [member.value for member in cls]


class BringUp(str, Enum):
    """How the guest tooling is installed on first boot."""

    NONE = "none"
    GUEST_ADDITIONS = "guest-additions"
    # Attach a copy of the host's guest additions ISO instead of the
    # built-in "additions" medium.
    GUEST_ADDITIONS_ISO = "guest-additions-iso"


class ArtifactState(str, Enum):
    ABSENT = "absent"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded-unverified"
    VERIFIED = "verified"
    CORRUPT = "corrupt"


class VMState(str, Enum):
    ABSENT = "absent"
    IMPORTED = "imported"
    BASELINE_PENDING = "baseline-pending"
    BASELINE_READY = "baseline-ready"


class Outcome(str, Enum):
    PROVISIONED = "provisioned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageProfile:
    """One row of the static image table."""

    key: str
    browser: str
    os: str
    unit: int
    url: str
    md5: str
    catalog_index: int
    catalog_file: int = 1
    hash_source: str = "hash-list"
    bringup: BringUp = BringUp.GUEST_ADDITIONS
    boot_wait: Optional[int] = None
    vram: Optional[int] = None


@dataclass(frozen=True)
class CatalogEntry:
    image_id: ImageId
    vm_name: str
    os_label: str
    archive_name: str
    image_name: str
    url: str
    md5: str
    unit: int
    bringup: BringUp = BringUp.GUEST_ADDITIONS
    boot_wait: Optional[int] = None
    vram: Optional[int] = None

    @property
    def disk_name(self) -> str:
        return f"{self.vm_name}-disk1.vmdk"


@dataclass
class LocalArtifact:
    path: Path
    state: ArtifactState = ArtifactState.ABSENT


@dataclass
class VirtualMachineRecord:
    name: str
    state: VMState = VMState.ABSENT
    snapshot: Optional[str] = None


@dataclass
class ProvisionResult:
    identifier: str
    outcome: Outcome
    vm_name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class IevmsConfig:
    install_path: Path
    versions: List[str]
    reuse_win7: bool
    curl_opts: List[str]
    catalog_source: str
    catalog_url: str
    images_path: Path
    kernel: str
    download_attempts: int = 3
    sleep_wait: int = 5
    os_boot_wait: int = 20
    shutdown_timeout: int = 0
    keep_going: bool = False
    version: str = IEVMS_VERSION
