"""First-boot guest tooling installation for ievms."""

from __future__ import annotations

import shutil
import time
from enum import Enum

from ievms.constants import GUEST_ADDITIONS_ISO
from ievms.exceptions import MissingDependency, ShutdownTimeout
from ievms.models import BringUp, CatalogEntry, IevmsConfig
from ievms.utils import log
from ievms.virtualbox import VirtualBox


class Stage(str, Enum):
    IMPORTED = "imported"
    TOOLING_ATTACHED = "tooling-attached"
    BOOTED = "booted"
    SHUTDOWN_OBSERVED = "shutdown-observed"


class BaselineSequencer:
    """Boot a freshly imported machine once so it installs guest additions.

    The guest images install the additions from the optical drive on first
    boot and power themselves off afterwards; the sequencer attaches the
    medium, boots headless, nudges the guest with the power button and waits
    until the host reports the machine powered off.
    """

    def __init__(self, vbox: VirtualBox, cfg: IevmsConfig) -> None:
        self.vbox = vbox
        self.cfg = cfg
        self.stage = Stage.IMPORTED

    def _advance(self, vm_name: str, stage: Stage) -> None:
        self.stage = stage
        log("DEBUG", f"{vm_name}: {stage.value}")

    def _host_additions_copy(self) -> str:
        source = GUEST_ADDITIONS_ISO.get(self.cfg.kernel)
        if source is None or not source.exists():
            raise MissingDependency(f"Guest Additions ISO not found at {source}")
        destination = self.cfg.install_path / source.name
        log("INFO", f"Copying Guest Additions iso to {self.cfg.install_path}")
        shutil.copy2(source, destination)
        return str(destination)

    def attach_tooling(self, entry: CatalogEntry) -> None:
        if entry.bringup == BringUp.GUEST_ADDITIONS_ISO:
            # VirtualBox errors when attaching the built-in "additions" medium here.
            medium = self._host_additions_copy()
            log("INFO", "Guest Additions will be attached, but you may have to install them manually on first run")
        else:
            medium = "additions"
        log("INFO", "Attaching Guest Additions")
        self.vbox.attach_dvd(entry.vm_name, medium)
        self._advance(entry.vm_name, Stage.TOOLING_ATTACHED)

    def boot(self, entry: CatalogEntry) -> None:
        log("INFO", f"Starting VM {entry.vm_name}")
        self.vbox.start_headless(entry.vm_name)
        self._advance(entry.vm_name, Stage.BOOTED)

    def wait_for_shutdown(self, entry: CatalogEntry) -> None:
        boot_wait = self.cfg.os_boot_wait
        if entry.boot_wait is not None:
            boot_wait = max(entry.boot_wait, boot_wait)
        if boot_wait > self.cfg.os_boot_wait:
            log("INFO", f"{entry.vm_name} takes some extra time to boot on first run...")
        time.sleep(boot_wait)
        self.vbox.acpi_power_button(entry.vm_name)

        started = time.monotonic()
        while True:
            log("INFO", f"Waiting for {entry.vm_name} to shutdown...")
            time.sleep(self.cfg.sleep_wait)
            if self.vbox.vm_state(entry.vm_name) == "poweroff":
                # Give VirtualBox a moment to release the session lock.
                time.sleep(self.cfg.sleep_wait)
                break
            if self.cfg.shutdown_timeout and time.monotonic() - started >= self.cfg.shutdown_timeout:
                raise ShutdownTimeout(
                    f"{entry.vm_name} did not power off within {self.cfg.shutdown_timeout}s (SHUTDOWN_TIMEOUT)"
                )
        self._advance(entry.vm_name, Stage.SHUTDOWN_OBSERVED)

    def run(self, entry: CatalogEntry) -> Stage:
        self.stage = Stage.IMPORTED
        if entry.bringup == BringUp.NONE:
            log("INFO", f"No first-boot tooling step for {entry.vm_name}")
            return self.stage
        self.attach_tooling(entry)
        self.boot(entry)
        self.wait_for_shutdown(entry)
        return self.stage
