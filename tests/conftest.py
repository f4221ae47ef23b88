"""Shared test fixtures and an in-memory VirtualBox stand-in."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

import pytest

from ievms.models import IevmsConfig
from ievms.virtualbox import VirtualBox


class FakeVirtualBox(VirtualBox):
    """Records VBoxManage operations against an in-memory machine registry."""

    def __init__(self) -> None:
        super().__init__(binary="VBoxManage")
        self.machines: Dict[str, dict] = {}
        self.calls: List[tuple] = []

    def available(self) -> bool:
        return True

    def machine_info(self, name: str) -> Dict[str, str]:
        machine = self.machines.get(name)
        if machine is None:
            return {}
        info = {"name": name, "VMState": machine["state"]}
        for idx, snapshot in enumerate(machine["snapshots"]):
            info["SnapshotName" if idx == 0 else f"SnapshotName-{idx}"] = snapshot
        return info

    def vm_state(self, name: str) -> str:
        return self.machines[name]["state"]

    def import_appliance(self, image: Path, vm_name: str, unit: int, disk: str) -> None:
        self.calls.append(("import", vm_name, unit, disk))
        self.machines[vm_name] = {
            "image": Path(image).name,
            "state": "poweroff",
            "snapshots": [],
            "extradata": {},
            "shared": {},
            "dvd": None,
        }

    def modify_vm(self, name: str, *options: str) -> None:
        self.calls.append(("modifyvm", name) + options)

    def add_shared_folder(self, name: str, share: str, host_path: Path) -> None:
        self.calls.append(("sharedfolder", name, share))
        self.machines[name]["shared"][share] = Path(host_path)

    def attach_dvd(self, name: str, medium: str) -> None:
        self.calls.append(("attach", name, medium))
        self.machines[name]["dvd"] = medium

    def start_headless(self, name: str) -> None:
        self.calls.append(("start", name))
        self.machines[name]["state"] = "running"

    def acpi_power_button(self, name: str) -> None:
        self.calls.append(("acpipowerbutton", name))
        self.machines[name]["state"] = "poweroff"

    def set_extradata(self, name: str, key: str, value: str) -> None:
        self.calls.append(("setextradata", name, key))
        self.machines[name]["extradata"][key] = json.loads(value)

    def take_snapshot(self, name: str, snapshot: str, description: str) -> None:
        self.calls.append(("snapshot", name, snapshot))
        self.machines[name]["snapshots"].append(snapshot)


@pytest.fixture
def fake_vbox() -> FakeVirtualBox:
    return FakeVirtualBox()


@pytest.fixture
def default_config(tmp_path) -> IevmsConfig:
    """Return an IevmsConfig pointing at a temporary install directory."""
    from ievms.constants import DEFAULT_IMAGES_PATH

    install = tmp_path / "ievms"
    install.mkdir()
    return IevmsConfig(
        install_path=install,
        versions=["8", "9", "10", "11", "EDGE"],
        reuse_win7=True,
        curl_opts=[],
        catalog_source="static",
        catalog_url="https://catalog.example.com/vms/",
        images_path=DEFAULT_IMAGES_PATH,
        kernel="Linux",
        download_attempts=3,
        sleep_wait=1,
        os_boot_wait=20,
        shutdown_timeout=0,
        keep_going=False,
    )


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# All environment variables that parse_env() reads, cleared for a clean slate.
_PARSE_ENV_VARS = [
    "INSTALL_PATH",
    "IEVMS_VERSIONS",
    "REUSE_WIN7",
    "CURL_OPTS",
    "IEVMS_CATALOG",
    "IEVMS_CATALOG_URL",
    "IEVMS_IMAGES_FILE",
    "DOWNLOAD_ATTEMPTS",
    "SLEEP_WAIT",
    "OS_BOOT_WAIT",
    "SHUTDOWN_TIMEOUT",
    "IEVMS_KEEP_GOING",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
