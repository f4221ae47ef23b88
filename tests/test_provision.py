"""Tests for ievms.provision module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from ievms.catalog import Resolver
from ievms.config import load_image_table
from ievms.models import VMState
from ievms.provision import Provisioner, _has_snapshot


def _entry(cfg, identifier):
    return Resolver(cfg, load_image_table()).resolve(identifier)


class TestHasSnapshot:
    def test_matches_any_snapshot_slot(self):
        info = {"SnapshotName": "before", "SnapshotName-1": "clean"}
        assert _has_snapshot(info, "clean") is True
        assert _has_snapshot(info, "after") is False


class TestProvisioner:
    def test_full_provision(self, fake_vbox, default_config):
        entry = _entry(default_config, "8")
        image = default_config.install_path / entry.image_name
        with patch("ievms.bringup.time.sleep"):
            record = Provisioner(fake_vbox, default_config).provision(entry, image)
        assert record.state == VMState.BASELINE_READY
        assert record.snapshot == "clean"
        machine = fake_vbox.machines["IE8 - Win7"]
        assert machine["image"] == "IE8 - Win7.ova"
        assert machine["shared"] == {"ievms": default_config.install_path}
        assert machine["extradata"] == {"ievms": {"version": "0.4.0"}}
        assert machine["snapshots"] == ["clean"]
        assert fake_vbox.calls[0] == ("import", "IE8 - Win7", 9, "IE8 - Win7-disk1.vmdk")
        assert fake_vbox.calls[-1] == ("snapshot", "IE8 - Win7", "clean")

    def test_extradata_is_compact_json(self, default_config):
        vbox = MagicMock()
        vbox.machine_info.return_value = {}
        entry = _entry(default_config, "EDGE")
        Provisioner(vbox, default_config, sequencer=MagicMock()).provision(entry, default_config.install_path / "x.ova")
        vbox.set_extradata.assert_called_once_with("MSEdge - Win10", "ievms", '{"version":"0.4.0"}')
        vbox.take_snapshot.assert_called_once_with("MSEdge - Win10", "clean", "The initial VM state")

    def test_snapshot_follows_bringup(self, default_config):
        order = []
        vbox = MagicMock()
        vbox.machine_info.return_value = {}
        vbox.take_snapshot.side_effect = lambda *a: order.append("snapshot")
        sequencer = MagicMock()
        sequencer.run.side_effect = lambda entry: order.append("bringup")
        entry = _entry(default_config, "9")
        Provisioner(vbox, default_config, sequencer=sequencer).provision(entry, default_config.install_path / "x.ova")
        assert order == ["bringup", "snapshot"]

    def test_win81_sets_vram(self, default_config):
        default_config.reuse_win7 = False
        vbox = MagicMock()
        vbox.machine_info.return_value = {}
        entry = _entry(default_config, "11")
        Provisioner(vbox, default_config, sequencer=MagicMock()).provision(entry, default_config.install_path / "x.ova")
        vbox.modify_vm.assert_called_once_with("IE11 - Win81", "--vram", "128")
        assert vbox.import_appliance.call_args[0][2] == 8

    def test_second_run_is_a_no_op(self, fake_vbox, default_config):
        entry = _entry(default_config, "8")
        image = default_config.install_path / entry.image_name
        provisioner = Provisioner(fake_vbox, default_config)
        with patch("ievms.bringup.time.sleep"):
            provisioner.provision(entry, image)
            record = provisioner.provision(entry, image)
        assert record.state == VMState.BASELINE_READY
        assert [c[0] for c in fake_vbox.calls].count("import") == 1
        assert fake_vbox.machines["IE8 - Win7"]["snapshots"] == ["clean"]

    def test_existing_machine_without_snapshot_is_untouched(self, fake_vbox, default_config):
        entry = _entry(default_config, "8")
        fake_vbox.machines["IE8 - Win7"] = {"state": "poweroff", "snapshots": []}
        with patch("ievms.provision.log") as mock_log:
            record = Provisioner(fake_vbox, default_config).provision(entry, default_config.install_path / "x.ova")
        assert record.state == VMState.IMPORTED
        assert fake_vbox.calls == []
        assert any(c.args[0] == "WARN" for c in mock_log.call_args_list)

    def test_existing_reports_absent_machine(self, fake_vbox, default_config):
        assert Provisioner(fake_vbox, default_config).existing("IE9 - Win7") is None
