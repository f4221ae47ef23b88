"""VirtualBox machine import and baseline snapshot for ievms."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional

from ievms.bringup import BaselineSequencer
from ievms.constants import EXTRADATA_KEY, SHARED_FOLDER_NAME, SNAPSHOT_DESCRIPTION, SNAPSHOT_NAME
from ievms.models import CatalogEntry, IevmsConfig, VirtualMachineRecord, VMState
from ievms.utils import log
from ievms.virtualbox import VirtualBox


def _has_snapshot(info: Dict[str, str], name: str) -> bool:
    return any(key.startswith("SnapshotName") and value == name for key, value in info.items())


class Provisioner:
    def __init__(self, vbox: VirtualBox, cfg: IevmsConfig, sequencer: Optional[BaselineSequencer] = None) -> None:
        self.vbox = vbox
        self.cfg = cfg
        self.sequencer = sequencer or BaselineSequencer(vbox, cfg)

    def existing(self, vm_name: str) -> Optional[VirtualMachineRecord]:
        info = self.vbox.machine_info(vm_name)
        if not info:
            return None
        if _has_snapshot(info, SNAPSHOT_NAME):
            return VirtualMachineRecord(name=vm_name, state=VMState.BASELINE_READY, snapshot=SNAPSHOT_NAME)
        return VirtualMachineRecord(name=vm_name, state=VMState.IMPORTED)

    def provision(self, entry: CatalogEntry, image_path: Path) -> VirtualMachineRecord:
        log("INFO", f"Checking for existing {entry.vm_name} VM")
        record = self.existing(entry.vm_name)
        if record is not None:
            if record.state != VMState.BASELINE_READY:
                log("WARN", f"{entry.vm_name} exists without a '{SNAPSHOT_NAME}' snapshot; leaving it untouched")
            else:
                log("INFO", f"Found {entry.vm_name} VM - skipping")
            return record

        vm = entry.vm_name
        log("INFO", f"Creating {vm} VM (disk: {entry.disk_name})")
        self.vbox.import_appliance(image_path, vm, entry.unit, entry.disk_name)
        record = VirtualMachineRecord(name=vm, state=VMState.IMPORTED)
        if entry.vram:
            self.vbox.modify_vm(vm, "--vram", str(entry.vram))

        log("INFO", "Adding shared folder")
        self.vbox.add_shared_folder(vm, SHARED_FOLDER_NAME, self.cfg.install_path)

        log("INFO", f"Building {vm} VM")
        record.state = VMState.BASELINE_PENDING
        self.sequencer.run(entry)

        log("INFO", "Tagging VM with ievms version")
        tag = json.dumps({"version": self.cfg.version}, separators=(",", ":"))
        self.vbox.set_extradata(vm, EXTRADATA_KEY, tag)

        log("INFO", "Creating clean snapshot")
        self.vbox.take_snapshot(vm, SNAPSHOT_NAME, SNAPSHOT_DESCRIPTION)
        record.state = VMState.BASELINE_READY
        record.snapshot = SNAPSHOT_NAME
        log("SUCCESS", f"{vm} is ready")
        return record
