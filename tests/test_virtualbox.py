"""Tests for ievms.virtualbox module."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from ievms.exceptions import HostCommandFailure, MissingDependency
from ievms.virtualbox import VirtualBox, parse_machinereadable

SHOWVMINFO = '''name="IE8 - Win7"
groups="/"
VMState="poweroff"
VMStateChangeTime="2026-01-01T00:00:00.000000000"
SnapshotName="clean"
SnapshotUUID="5c6e0b2e-0000-0000-0000-000000000000"
'''


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=["VBoxManage"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestParseMachinereadable:
    def test_parses_quoted_pairs(self):
        info = parse_machinereadable(SHOWVMINFO)
        assert info["name"] == "IE8 - Win7"
        assert info["VMState"] == "poweroff"
        assert info["SnapshotName"] == "clean"

    def test_ignores_lines_without_assignment(self):
        assert parse_machinereadable("garbage\n\nkey=value\n") == {"key": "value"}


class TestVirtualBox:
    def test_missing_binary(self):
        with patch("ievms.virtualbox.run", side_effect=FileNotFoundError):
            with pytest.raises(MissingDependency, match="VirtualBox command line utilities"):
                VirtualBox().version()

    def test_failure_raises_host_command_failure(self):
        with patch("ievms.virtualbox.run", return_value=_completed(1, stderr="boom")):
            with pytest.raises(HostCommandFailure, match="startvm IE8 - Win7 --type headless' failed"):
                VirtualBox().start_headless("IE8 - Win7")

    def test_version(self):
        with patch("ievms.virtualbox.run", return_value=_completed(stdout="7.0.14r161095\n")) as mock_run:
            assert VirtualBox().version() == "7.0.14r161095"
        assert mock_run.call_args[0][0] == ["VBoxManage", "-v"]
        assert mock_run.call_args.kwargs["capture_output"] is True

    def test_machine_info_missing_machine(self):
        with patch("ievms.virtualbox.run", return_value=_completed(1, stderr="Could not find a registered machine")):
            assert VirtualBox().machine_info("IE8 - Win7") == {}

    def test_vm_state_failed_query_is_unknown(self):
        with patch("ievms.virtualbox.run", return_value=_completed(1, stderr="VBOX_E_INVALID_OBJECT_STATE")):
            assert VirtualBox().vm_state("IE8 - Win7") == "unknown"

    def test_vm_state(self):
        with patch("ievms.virtualbox.run", return_value=_completed(stdout=SHOWVMINFO)):
            assert VirtualBox().vm_state("IE8 - Win7") == "poweroff"

    def test_import_command(self, tmp_path):
        image = tmp_path / "IE11 - Win81.ova"
        with patch("ievms.virtualbox.run", return_value=_completed()) as mock_run:
            VirtualBox().import_appliance(image, "IE11 - Win81", 8, "IE11 - Win81-disk1.vmdk")
        assert mock_run.call_args[0][0] == [
            "VBoxManage",
            "import",
            str(image),
            "--vsys",
            "0",
            "--vmname",
            "IE11 - Win81",
            "--unit",
            "8",
            "--disk",
            "IE11 - Win81-disk1.vmdk",
        ]

    def test_shared_folder_command(self, tmp_path):
        with patch("ievms.virtualbox.run", return_value=_completed()) as mock_run:
            VirtualBox().add_shared_folder("IE8 - Win7", "ievms", tmp_path)
        assert mock_run.call_args[0][0] == [
            "VBoxManage",
            "sharedfolder",
            "add",
            "IE8 - Win7",
            "--automount",
            "--name",
            "ievms",
            "--hostpath",
            str(tmp_path),
        ]

    def test_attach_dvd_command(self):
        with patch("ievms.virtualbox.run", return_value=_completed()) as mock_run:
            VirtualBox().attach_dvd("IE8 - Win7", "additions")
        cmd = mock_run.call_args[0][0]
        assert cmd[:4] == ["VBoxManage", "storageattach", "IE8 - Win7", "--storagectl"]
        assert "IDE Controller" in cmd
        assert cmd[-2:] == ["--medium", "additions"]

    def test_snapshot_command(self):
        with patch("ievms.virtualbox.run", return_value=_completed()) as mock_run:
            VirtualBox().take_snapshot("IE8 - Win7", "clean", "The initial VM state")
        assert mock_run.call_args[0][0] == [
            "VBoxManage",
            "snapshot",
            "IE8 - Win7",
            "take",
            "clean",
            "--description",
            "The initial VM state",
        ]

    def test_extradata_and_power_button(self):
        with patch("ievms.virtualbox.run", return_value=_completed()) as mock_run:
            vbox = VirtualBox()
            vbox.set_extradata("IE8 - Win7", "ievms", '{"version":"0.4.0"}')
            vbox.acpi_power_button("IE8 - Win7")
        first, second = (c[0][0] for c in mock_run.call_args_list)
        assert first == ["VBoxManage", "setextradata", "IE8 - Win7", "ievms", '{"version":"0.4.0"}']
        assert second == ["VBoxManage", "controlvm", "IE8 - Win7", "acpipowerbutton"]

    def test_available_uses_path_lookup(self):
        with patch("ievms.virtualbox.has_command", return_value=False) as mock_has:
            assert VirtualBox("VBoxManage").available() is False
        mock_has.assert_called_once_with("VBoxManage")
