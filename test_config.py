#!/usr/bin/env python3
import json

import pytest

from telemdash.config import Config, load_config, save_config


def test_defaults():
    config = Config()
    assert config.exit_key == "q"
    assert config.tick_interval == 0.25


@pytest.mark.parametrize("kwargs", [{"exit_key": ""}, {"tick_interval": 0}, {"tick_interval": -1.0}])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs)


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / "nope.json")) == Config()


def test_save_then_load(tmp_path):
    path = str(tmp_path / "settings.json")
    save_config(Config(exit_key="x", tick_interval=0.5), path)

    with open(path) as f:
        saved = json.load(f)
    assert saved["exit_key"] == "x"
    assert "last_saved" in saved
    assert load_config(path) == Config(exit_key="x", tick_interval=0.5)


def test_invalid_json_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_config(str(path)) == Config()


def test_invalid_field_is_ignored_others_kept(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"exit_key": "z", "tick_interval": -3}))
    assert load_config(str(path)) == Config(exit_key="z")


def test_non_object_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]")
    assert load_config(str(path)) == Config()
