"""Host preparation for ievms: system checks and helper installs."""

from __future__ import annotations

import os
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from ievms.constants import (
    EXT_PACK_ARCHIVE,
    EXT_PACK_NAME,
    SUPPORTED_KERNELS,
    UNAR_MD5,
    UNAR_URL,
    VBOX_DOWNLOAD_INDEX,
    VBOX_HASHES_URL,
)
from ievms.exceptions import (
    DownloadTransportFailure,
    ExtractionFailure,
    IevmsError,
    MissingDependency,
    UnsupportedHost,
)
from ievms.fetcher import Fetcher
from ievms.models import IevmsConfig
from ievms.utils import ensure_directory, fetch_text, has_command, log
from ievms.virtualbox import VirtualBox

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)")


@dataclass
class HostInfo:
    kernel: str
    unar: str
    vbox_release: Optional[str] = None


class HostManager:
    """Run the one-time host checks before any image is provisioned."""

    def __init__(self, cfg: IevmsConfig, vbox: VirtualBox, fetcher: Fetcher) -> None:
        self.cfg = cfg
        self.vbox = vbox
        self.fetcher = fetcher
        self.vbox_release: Optional[str] = None

    def prepare(self) -> HostInfo:
        self._check_system()
        self._create_home()
        self._check_virtualbox()
        self._ensure_ext_pack()
        unar = self._ensure_unar()
        return HostInfo(kernel=self.cfg.kernel, unar=unar, vbox_release=self.vbox_release)

    def _check_system(self) -> None:
        if self.cfg.kernel not in SUPPORTED_KERNELS:
            raise UnsupportedHost(f"Sorry, {self.cfg.kernel} is not supported.")

    def _create_home(self) -> None:
        ensure_directory(self.cfg.install_path)
        self._migrate_legacy_layout()

    def _migrate_legacy_layout(self) -> None:
        """Move archives and images from a very old ``ova/IE*/`` layout into place."""
        legacy_root = self.cfg.install_path / "ova"
        if not legacy_root.is_dir():
            return
        for pattern in ("IE*/IE*.ova", "IE*/IE*.zip"):
            for path in sorted(legacy_root.glob(pattern)):
                target = self.cfg.install_path / path.name
                log("INFO", f"Moving {path} to {target}")
                path.replace(target)

    def _check_virtualbox(self) -> None:
        log("INFO", "Checking for VirtualBox")
        if not self.vbox.available():
            raise MissingDependency(
                "VirtualBox command line utilities are not installed, please (re)install! (http://virtualbox.org)"
            )

    def detect_release(self) -> str:
        """Return the newest published VirtualBox release matching the installed one."""
        version = self.vbox.version()
        if "kernel module is not loaded" in version:
            raise MissingDependency(version)
        match = _VERSION_RE.match(version.strip().splitlines()[-1] if version.strip() else "")
        if match is None:
            raise IevmsError(f"Cannot parse VirtualBox version '{version}'")
        major, minor, patch = match.groups()
        major_minor = f"{major}.{minor}"

        try:
            index = fetch_text(VBOX_DOWNLOAD_INDEX, self.cfg.curl_opts)
        except DownloadTransportFailure as exc:
            log("WARN", f"Could not read the VirtualBox download index ({exc}); assuming {major_minor}.{patch}")
            return f"{major_minor}.{patch}"

        for release in range(int(patch), -1, -1):
            candidate = f"{major_minor}.{release}"
            if f"{candidate}/" in index:
                log("INFO", f"Virtualbox version {candidate} found.")
                return candidate
            log("INFO", f"Virtualbox version {candidate} not found, skipping.")
        log("WARN", f"No published release found for {major_minor}; assuming {major_minor}.{patch}")
        return f"{major_minor}.{patch}"

    def _ensure_ext_pack(self) -> None:
        log("INFO", f"Checking for {EXT_PACK_NAME}")
        if EXT_PACK_NAME in self.vbox.list_extpacks():
            return
        release = self.detect_release()
        self.vbox_release = release
        archive = EXT_PACK_ARCHIVE.format(release=release)
        url = f"{VBOX_DOWNLOAD_INDEX}{release}/{archive}"
        sums = fetch_text(VBOX_HASHES_URL.format(release=release), self.cfg.curl_opts)
        md5 = next((line[:32] for line in sums.splitlines() if archive in line), None)
        if md5 is None:
            raise IevmsError(f"No MD5 listed for {archive} in the VirtualBox {release} hash list")

        destination = self.cfg.install_path / archive
        self.fetcher.fetch(EXT_PACK_NAME, url, destination, md5)
        log("INFO", f"Installing {EXT_PACK_NAME} from {destination}")
        self.vbox.install_extpack(destination)

    def _ensure_unar(self) -> str:
        if has_command("unar"):
            return "unar"
        local = self.cfg.install_path / "unar"
        if local.exists() and os.access(local, os.X_OK):
            return str(local)
        if self.cfg.kernel == "Darwin":
            return self._install_unar()
        raise MissingDependency("Linux support requires unar (sudo apt-get install unar for Ubuntu/Debian)")

    def _install_unar(self) -> str:
        archive = self.cfg.install_path / Path(urlparse(UNAR_URL).path).name
        self.fetcher.fetch("unar", UNAR_URL, archive, UNAR_MD5)
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(self.cfg.install_path)
        except zipfile.BadZipFile as exc:
            raise ExtractionFailure(f"Failed to extract {archive} to {self.cfg.install_path}: {exc}") from exc
        # zipfile drops the executable bit.
        for tool in ("unar", "lsar"):
            binary = self.cfg.install_path / tool
            if binary.exists():
                binary.chmod(0o755)
        local = self.cfg.install_path / "unar"
        if not local.exists():
            raise MissingDependency(f"Could not find unar in {self.cfg.install_path}")
        return str(local)
