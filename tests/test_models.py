"""Tests for board decoding and the board file helpers."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from inframon.models import Board, Device, DeviceKind, MonitoringPolicy, PingResult
from inframon.storage import default_board_data, get_data_dir, read_board_data, save_board_data


class TestDeviceDecoding:
    def test_full_node(self):
        device = Device.from_dict({
            "id": "node-1",
            "type": "server",
            "ipPublic": "203.0.113.10",
            "ipPrivate": "10.0.0.10",
            "ipTailscale": "100.64.0.10",
            "pingEnabled": True,
            "pingIntervalSec": 15,
            "connectEnabled": True,
        })
        assert device.kind is DeviceKind.DEVICE
        assert device.device_type == "server"
        assert device.ip_overlay == "100.64.0.10"
        assert device.ping_enabled is True
        assert device.ping_interval_sec == 15
        assert device.connect_enabled is True

    def test_network_type_is_segment(self):
        assert Device.from_dict({"id": "net-1", "type": "network"}).is_segment

    def test_unset_ping_flag_is_disabled(self):
        assert Device.from_dict({"id": "a"}).ping_enabled is False

    def test_malformed_fields_default(self):
        device = Device.from_dict({
            "id": "a",
            "ipPublic": 42,
            "pingEnabled": "yes",
            "pingIntervalSec": "10",
        })
        assert device.ip_public == ""
        assert device.ping_enabled is False
        assert device.ping_interval_sec == 0

    def test_pick_target_order(self):
        assert Device(id="a", ip_private="10.0.0.1", ip_overlay="100.64.0.1").pick_target() == "10.0.0.1"
        assert Device(id="a").pick_target() == ""


class TestBoardDecoding:
    def test_policy_and_nodes(self):
        board = Board.from_dict({
            "meta": {"monitoring": {"enabled": True, "intervalSec": 45, "showStatus": True}},
            "nodes": [{"id": "a"}, {"id": "b", "type": "network"}],
        })
        assert board.policy == MonitoringPolicy(enabled=True, interval_sec=45, show_status=True)
        assert [d.id for d in board.devices] == ["a", "b"]

    def test_drops_nodes_without_id_and_duplicates(self):
        board = Board.from_dict({"nodes": [{"id": "a", "ipPublic": "1.1.1.1"}, {"type": "server"}, {"id": "a"}, "junk"]})
        assert [d.id for d in board.devices] == ["a"]
        assert board.devices[0].ip_public == "1.1.1.1"

    def test_missing_sections(self):
        board = Board.from_dict({})
        assert board.devices == []
        assert board.policy.interval_sec == 0  # sanitized by the ping monitor


class TestResultRendering:
    def test_ping_result_to_dict(self):
        ts = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        data = PingResult(online=False, last_checked=ts, error="no ip").to_dict()
        assert data == {
            "online": False,
            "lastChecked": "2026-01-01T12:00:00Z",
            "rttMs": 0,
            "target": "",
            "error": "no ip",
        }


class TestBoardFile:
    def test_missing_file_creates_default(self, tmp_path):
        path = tmp_path / "board.json"
        data = read_board_data(path)
        assert path.exists()
        assert [n["id"] for n in data["nodes"]] == ["net-1", "node-1", "node-2"]

    def test_corrupt_file_loads_default_without_overwrite(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("{broken")
        data = read_board_data(path)
        assert data["meta"]["monitoring"]["intervalSec"] == 30
        assert path.read_text() == "{broken"

    def test_save_then_read(self, tmp_path):
        path = tmp_path / "nested" / "board.json"
        data = default_board_data()
        data["nodes"] = [{"id": "x"}]
        save_board_data(path, data)
        assert json.loads(path.read_text())["nodes"] == [{"id": "x"}]

    def test_default_board_decodes(self):
        board = Board.from_dict(default_board_data())
        assert board.devices[0].is_segment
        assert not any(d.ping_enabled for d in board.devices)

    def test_data_dir_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INFRAMON_DATA_DIR", str(tmp_path))
        assert get_data_dir() == tmp_path
