import json

import anyconfig
import pytest

import omen
from omen.hook.database import DatabaseHook
from omen.hook.mentions import MentionsHook
from omen.hook.runner import _Schema, config_to_host


def _config(tmp_path, **extra):
    config = {"hooks": {"database": {"path": "omen.hook.database.DatabaseHook",
                                     "config": {"file": str(tmp_path / "omen.db")}},
                        "mentions": {"path": "omen.hook.mentions.MentionsHook",
                                     "config": {"cooldown": 5}}}}
    config.update(extra)
    return config


def test_config_builds_host(tmp_path):
    host = config_to_host(_Schema.config(_config(tmp_path)))
    assert isinstance(host[DatabaseHook], DatabaseHook)
    assert isinstance(host["mentions"], MentionsHook)
    assert host["mentions"].engine.cooldown == 5


def test_config_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(_config(tmp_path)))
    config = _Schema.config(anyconfig.load(str(path)))
    assert config["path"] == []
    assert config["logging"] is None
    assert config["hooks"]["mentions"]["enabled"]


def test_disabled_hooks_are_not_loaded(tmp_path):
    config = _config(tmp_path)
    config["hooks"]["mentions"]["enabled"] = False
    host = config_to_host(_Schema.config(config))
    assert host["mentions"].engine is None


def test_bad_hook_path(tmp_path):
    config = _config(tmp_path)
    config["hooks"]["mentions"]["path"] = "omen.hook.mentions.Missing"
    with pytest.raises(AttributeError):
        config_to_host(_Schema.config(config))


def test_missing_hook_path(tmp_path):
    config = _config(tmp_path)
    del config["hooks"]["mentions"]["path"]
    with pytest.raises(omen.Invalid):
        _Schema.config(config)
