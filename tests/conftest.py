import json
import logging
from pathlib import Path

import pytest

from eventnorm.config import PipelineConfig
from eventnorm.core.engine import compile_rule
from eventnorm.core.translators import Translators


def write_json(path: Path, obj) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(obj if isinstance(obj, str) else json.dumps(obj), encoding="utf-8")
    return path


@pytest.fixture
def write():
    return write_json


@pytest.fixture
def rules_home(tmp_path):
    """
    rules/
      common/base.json        shared rules, included by path
      app/.metadata           json:app
      app/default.json
      app/login.json
    """
    home = tmp_path / "rules"
    write_json(home / "common" / "base.json", [{"category_uid": {"@value": 3}}])
    write_json(home / "app" / ".metadata", {"type": "json:app"})
    write_json(home / "app" / "default.json", {"rules": [{"msg": {"@move": "message"}}]})
    write_json(home / "app" / "login.json", {
        "when": "event = 'login'",
        "rules": [
            {"event": {"@remove": True}},
            {"user": {"@move": "actor.user.name"}},
            {"@include": "common/base.json"},
            {"_": {"@value": {"class_uid": 3002}}},
        ],
    })
    return home


@pytest.fixture
def fast_config():
    return PipelineConfig(poll_interval=0.01)


@pytest.fixture
def message_translators():
    """Default-only registry: msg -> message, fixed uid."""
    translators = Translators("test", uid_factory=lambda: "uid-1")
    translators.add(compile_rule({"rules": [{"msg": {"@move": "message"}}]}, name="default"))
    return translators


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="eventnorm")
