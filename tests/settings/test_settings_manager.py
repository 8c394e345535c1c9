import json

import pytest

from inkbook.errors import SettingsLoadError, SettingsValidationError
from inkbook.listcore.types import ConflictPolicy, InsertPosition
from inkbook.settings.manager import SettingsManager, default_settings_path
from inkbook.settings.schema import DEFAULT_SETTINGS, resolve_list_section


def test_load_creates_defaults(tmp_path):
    path = tmp_path / "settings.json"
    manager = SettingsManager(path)
    manager.load()
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == DEFAULT_SETTINGS
    assert manager.get("lists.page_size") == 20
    assert manager.get("ui.missing", "fallback") == "fallback"


def test_load_merges_partial_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"ui": {"theme": "dark"}, "lists": {"overscan": 2}}), encoding="utf-8")
    manager = SettingsManager(path)
    manager.load()
    assert manager.get("ui.theme") == "dark"
    assert manager.get("ui.sidebar_open") is True
    assert manager.get("lists.overscan") == 2
    assert manager.get("lists.page_size") == 20


def test_set_persists_and_notifies(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    manager.load()
    changes = []
    manager.settingsChanged.connect(lambda key, value: changes.append((key, value)))

    manager.set("lists.page_size", 50)

    assert changes == [("lists.page_size", 50)]
    reloaded = SettingsManager(tmp_path / "settings.json")
    reloaded.load()
    assert reloaded.get("lists.page_size") == 50


def test_invalid_value_is_rejected_and_not_saved(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    manager.load()
    with pytest.raises(SettingsValidationError):
        manager.set("lists.page_size", 0)
    with pytest.raises(SettingsValidationError):
        manager.set("lists.conflict_policy", "last_write_wins")
    assert manager.get("lists.page_size") == 20


def test_broken_file_raises_load_error(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SettingsLoadError):
        SettingsManager(path).load()


def test_schema_violation_in_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"lists": {"page_size": "big"}}), encoding="utf-8")
    with pytest.raises(SettingsValidationError):
        SettingsManager(path).load()


def test_list_overrides(tmp_path):
    manager = SettingsManager(tmp_path / "settings.json")
    manager.load()
    manager.set("lists.overrides", {"bookings": {"page_size": 50, "create_position": "back"}})

    bookings = manager.list_settings("bookings")
    customers = manager.list_settings("customers")
    assert bookings.page_size == 50
    assert bookings.create_position is InsertPosition.BACK
    assert customers.page_size == 20
    assert customers.conflict_policy is ConflictPolicy.CLIENT_WINS


def test_resolve_list_section_ignores_unknown_lists():
    assert resolve_list_section(DEFAULT_SETTINGS, "invoices")["overscan"] == 5


def test_env_override_for_settings_path(tmp_path, monkeypatch):
    monkeypatch.setenv("INKBOOK_SETTINGS", str(tmp_path / "custom.json"))
    assert default_settings_path() == tmp_path / "custom.json"
    assert SettingsManager().path == tmp_path / "custom.json"
