import logging

import pytest

from eventnorm.config import EngineConfig
from eventnorm.core.exceptions import RuleError
from eventnorm.core.loader import RulesLoader, load_rules


@pytest.fixture
def tree(tmp_path, write):
    home = tmp_path / "rules"
    write(home / "stray.json", {"rules": []})
    write(home / "common" / "user.json", [{"user": {"@move": "actor.user.name"}}])

    write(home / "cisco" / ".metadata", {"type": "cisco:syslog"})
    write(home / "cisco" / "a_login.json", {"when": "code = 1", "rules": [{"@include": "common/user.json"}]})
    write(home / "cisco" / "asa" / "x.json", {"when": "code = 2", "rules": [{"code": {"@move": "id"}}]})
    write(home / "cisco" / "b_default.json", {"rules": [{"code": {"@move": "other_id"}}]})

    write(home / "cisco" / "ios" / ".metadata", {"type": "cisco:ios"})
    write(home / "cisco" / "ios" / "default.json", {"rules": []})

    write(home / "win" / ".metadata", {"type": "windows:xml"})
    write(home / "win" / "broken.json", "{not json")
    write(home / "win" / "bad_rule.json", {"rules": [{"a": {"@frob": 1}}]})
    write(home / "win" / "ok.json", {"when": "x = 1", "rules": []})
    return home


def test_loads_in_lexical_order_with_inherited_source_type(tree):
    report = RulesLoader(tree).load()

    assert report.loaded["cisco:syslog"] == ["a_login", "x", "b_default"]
    translators = report.translators.get("cisco:syslog")
    assert translators.names == ["a_login", "x"]
    assert translators.default.name == "b_default"


def test_nested_metadata_overrides(tree):
    report = RulesLoader(tree).load()
    assert report.loaded["cisco:ios"] == ["default"]
    assert report.source_types == ["cisco:ios", "cisco:syslog", "windows:xml"]


def test_includes_resolve_from_home(tree):
    translators = load_rules(tree).get("cisco:syslog")
    out = translators.translate({"code": 1, "user": "bob"})
    assert out["actor"] == {"user": {"name": "bob"}}
    assert out["unmapped"] == {"code": 1}


def test_broken_files_are_reported_and_skipped(tree, caplog):
    counts = {}
    config = EngineConfig(metrics_increment=lambda name, value: counts.__setitem__(name, counts.get(name, 0) + value))
    with caplog.at_level(logging.ERROR):
        report = RulesLoader(tree, config=config).load()

    assert not report.ok
    assert sorted(report.failed) == ["windows:xml"]
    assert sorted(report.failed["windows:xml"]) == ["win/bad_rule.json", "win/broken.json"]
    assert report.translators.get("windows:xml").names == ["ok"]
    assert counts == {"loader.failed": 2}
    assert "broken.json" in caplog.text
    assert "translators are incomplete" in caplog.text


def test_strict_raises_on_first_failure(tree):
    with pytest.raises(RuleError) as info:
        RulesLoader(tree, strict=True).load()
    assert "win" in str(info.value)


def test_missing_home(tmp_path):
    with pytest.raises(RuleError):
        RulesLoader(tmp_path / "nope").load()


def test_invalid_metadata_keeps_inherited_type(tmp_path, write, caplog):
    home = tmp_path / "rules"
    write(home / ".metadata", {"type": "json:app"})
    write(home / "sub" / ".metadata", {"type": ""})
    write(home / "sub" / "r.json", {"rules": []})

    report = RulesLoader(home).load()
    assert report.loaded == {"json:app": ["r"]}
    assert "Invalid" in caplog.text


def test_files_without_source_type_are_ignored(tree):
    report = RulesLoader(tree).load()
    loaded = [name for names in report.loaded.values() for name in names]
    assert "stray" not in loaded and "user" not in loaded
