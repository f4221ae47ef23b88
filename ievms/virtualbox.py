"""VBoxManage command wrappers for ievms."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Dict, List

from ievms.constants import DVD_CONTROLLER
from ievms.exceptions import HostCommandFailure, MissingDependency
from ievms.utils import has_command, run


def parse_machinereadable(output: str) -> Dict[str, str]:
    """Parse ``showvminfo --machinereadable`` output into a dict."""
    info: Dict[str, str] = {}
    for line in output.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        info[key.strip().strip('"')] = value.strip().strip('"')
    return info


class VirtualBox:
    """Typed access to the VBoxManage operations the pipeline needs.

    Every method raises :class:`HostCommandFailure` when VBoxManage exits
    non-zero, except the queries that treat a missing machine as an answer.
    """

    def __init__(self, binary: str = "VBoxManage") -> None:
        self.binary = binary

    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.binary] + args
        try:
            result = run(cmd, check=False, capture_output=True)
        except FileNotFoundError:
            raise MissingDependency(
                "VirtualBox command line utilities are not installed, please (re)install! (http://virtualbox.org)"
            )
        if check and result.returncode != 0:
            raise HostCommandFailure(cmd, result.returncode, result.stderr)
        return result

    def available(self) -> bool:
        return has_command(self.binary)

    def version(self) -> str:
        return self._run(["-v"]).stdout.strip()

    def list_extpacks(self) -> str:
        return self._run(["list", "extpacks"]).stdout

    def install_extpack(self, path: Path) -> None:
        self._run(["extpack", "install", str(path)])

    def machine_info(self, name: str) -> Dict[str, str]:
        """Return the machine's properties, or an empty dict if it does not exist."""
        result = self._run(["showvminfo", name, "--machinereadable"], check=False)
        if result.returncode != 0:
            return {}
        return parse_machinereadable(result.stdout)

    def vm_state(self, name: str) -> str:
        """Return the machine's VMState, or "unknown" when the query fails."""
        result = self._run(["showvminfo", name, "--machinereadable"], check=False)
        if result.returncode != 0:
            return "unknown"
        return parse_machinereadable(result.stdout).get("VMState", "unknown")

    def import_appliance(self, image: Path, vm_name: str, unit: int, disk: str) -> None:
        self._run(
            [
                "import",
                str(image),
                "--vsys",
                "0",
                "--vmname",
                vm_name,
                "--unit",
                str(unit),
                "--disk",
                disk,
            ]
        )

    def modify_vm(self, name: str, *options: str) -> None:
        self._run(["modifyvm", name, *options])

    def add_shared_folder(self, name: str, share: str, host_path: Path) -> None:
        self._run(["sharedfolder", "add", name, "--automount", "--name", share, "--hostpath", str(host_path)])

    def attach_dvd(self, name: str, medium: str) -> None:
        self._run(
            [
                "storageattach",
                name,
                "--storagectl",
                DVD_CONTROLLER,
                "--port",
                "0",
                "--device",
                "1",
                "--type",
                "dvddrive",
                "--medium",
                medium,
            ]
        )

    def start_headless(self, name: str) -> None:
        self._run(["startvm", name, "--type", "headless"])

    def acpi_power_button(self, name: str) -> None:
        self._run(["controlvm", name, "acpipowerbutton"])

    def set_extradata(self, name: str, key: str, value: str) -> None:
        self._run(["setextradata", name, key, value])

    def take_snapshot(self, name: str, snapshot: str, description: str) -> None:
        self._run(["snapshot", name, "take", snapshot, "--description", description])
