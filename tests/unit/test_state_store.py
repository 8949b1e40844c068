import json

from app.models.schemas import ConversionSettings
from app.utils.state_store import StateStore


def test_values_survive_reload(tmp_path):
    path = tmp_path / "state.json"
    store = StateStore(path)

    store.enabled = True
    store.watch_folder_path = "/media/inbox"
    store.save_conversion_settings(ConversionSettings(mp4_quality=18, mp4_preset="slow"))
    store.set_tool_exists("ffmpeg", True)

    reloaded = StateStore(path)
    assert reloaded.enabled is True
    assert reloaded.watch_folder_path == "/media/inbox"
    assert reloaded.get_conversion_settings().mp4_quality == 18
    assert reloaded.get_conversion_settings().mp4_preset == "slow"
    assert reloaded.tool_exists("ffmpeg") is True
    assert reloaded.tool_exists("cwebp") is False
    assert not path.with_name("state.json.tmp").exists()


def test_defaults_when_empty(tmp_path):
    store = StateStore(tmp_path / "state.json")

    assert store.enabled is False
    assert store.watch_folder_path is None
    assert store.get_conversion_settings() == ConversionSettings()


def test_invalid_settings_fall_back_to_defaults(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"conversion_settings": {"mp4_quality": 99, "mp4_preset": "warp"}}))

    assert StateStore(path).get_conversion_settings() == ConversionSettings()


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{broken")

    store = StateStore(path)
    assert store.enabled is False

    store.enabled = True
    assert json.loads(path.read_text())["enabled"] is True


def test_clearing_watch_folder(tmp_path):
    store = StateStore(tmp_path / "state.json")
    store.watch_folder_path = "/media/inbox"

    store.watch_folder_path = None

    assert store.watch_folder_path is None
