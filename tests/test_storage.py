"""Tests for JSON snapshot persistence."""

import pytest

from waigaya.core.settings import SlackConfig
from waigaya.core.storage import JsonStorage, StorageError


@pytest.fixture
def storage(tmp_path):
    return JsonStorage(data_dir=tmp_path)


def test_load_config_without_file_returns_none(storage):
    assert storage.load_config() is None


def test_config_round_trip_through_disk(tmp_path, general_channel):
    config = SlackConfig(
        bot_token="xoxb-1",
        app_token="xapp-1",
        channels=["C1"],
        watched_channel_data={"C1": general_channel},
    )
    JsonStorage(data_dir=tmp_path).save_config(config)

    # A fresh instance has no in-memory cache and must read the file
    loaded = JsonStorage(data_dir=tmp_path).load_config()
    assert loaded == config
    assert (tmp_path / "slack-config.json").exists()


def test_load_config_returns_independent_copy(storage):
    storage.save_config(SlackConfig(bot_token="xoxb-1", channels=["C1"]))
    loaded = storage.load_config()
    loaded.channels.append("C2")
    assert storage.load_config().channels == ["C1"]


def test_corrupt_config_raises_storage_error(tmp_path):
    (tmp_path / "slack-config.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonStorage(data_dir=tmp_path).load_config()


def test_users_blob_round_trip(storage):
    users = {"U1": {"id": "U1", "name": "alice", "profile": {}}}
    storage.save_users_blob(users)
    assert storage.load_users_blob() == users


def test_missing_blobs_load_empty(storage):
    assert storage.load_users_blob() == {}
    assert storage.load_emojis_blob() == {}


def test_emojis_last_modified(storage):
    assert storage.emojis_last_modified() is None
    storage.save_emojis_blob({"party": "https://emoji.test/party.gif"})
    modified = storage.emojis_last_modified()
    assert isinstance(modified, int)
    assert modified > 0


def test_save_leaves_no_temp_files(storage, tmp_path):
    storage.save_emojis_blob({"a": "https://emoji.test/a.png"})
    storage.save_emojis_blob({"b": "https://emoji.test/b.png"})
    assert sorted(p.name for p in tmp_path.iterdir()) == ["emojis.json"]
    assert storage.load_emojis_blob() == {"b": "https://emoji.test/b.png"}
