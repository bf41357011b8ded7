import pytest

from eventnorm.core.exceptions import PathSyntaxError
from eventnorm.core.path import PathResolver, merge


@pytest.mark.parametrize("path, value", [
    ("a", 1),
    ("a.b.c", "x"),
    ("actor.user.name", {"k": [1, 2]}),
    (["a", "b.c"], 3),
])
def test_put_then_get_returns_value(path, value):
    obj = {}
    assert PathResolver.put(obj, path, value)
    assert PathResolver.get(obj, path) == value


def test_get_prefers_literal_dotted_key():
    obj = {"http.status": 200, "http": {"status": 404}}
    assert PathResolver.get(obj, "http.status") == 200


def test_get_traverses_lists():
    obj = {"a": [{"b": 1}, {"b": 2}, {"c": 3}]}
    assert PathResolver.get(obj, "a.b") == [1, 2]
    assert PathResolver.get(obj, "a.x") is None


def test_get_missing_or_through_scalar():
    assert PathResolver.get({"a": 1}, "a.b") is None
    assert PathResolver.get({}, "a") is None
    assert PathResolver.get({"a": 1}, None) is None


def test_put_none_is_noop():
    obj = {}
    assert not PathResolver.put(obj, "a.b", None)
    assert obj == {}


def test_put_respects_overwrite():
    obj = {"a": 1}
    assert not PathResolver.put(obj, "a", 2, overwrite=False)
    assert obj["a"] == 1

    assert PathResolver.put(obj, "a", 2)
    assert obj["a"] == 2


def test_put_replaces_scalar_parent_only_with_overwrite():
    obj = {"a": 1}
    assert not PathResolver.put(obj, "a.b", 2, overwrite=False)
    assert obj == {"a": 1}

    assert PathResolver.put(obj, "a.b", 2, overwrite=True)
    assert obj == {"a": {"b": 2}}


def test_put_applies_to_list_elements():
    obj = {"items": [{"n": 1}, {"n": 2}, "x"]}
    assert PathResolver.put(obj, "items.seen", True)
    assert obj["items"][:2] == [{"n": 1, "seen": True}, {"n": 2, "seen": True}]


def test_remove_returns_value():
    obj = {"a": {"b": 1, "c": 2}, "x.y": 5}
    assert PathResolver.remove(obj, "a.b") == 1
    assert obj == {"a": {"c": 2}, "x.y": 5}

    assert PathResolver.remove(obj, "x.y") == 5
    assert PathResolver.remove(obj, "missing.path") is None


def test_cleanup_drops_empty_containers():
    obj = {"a": {"b": {}}, "c": [{}, 1], "d": [], "e": 0}
    assert PathResolver.cleanup(obj) == {"c": [1], "e": 0}


@pytest.mark.parametrize("bad", ["", "a..b", ".a", "a.", []])
def test_malformed_paths(bad):
    with pytest.raises(PathSyntaxError):
        PathResolver.split(bad)


def test_merge_keeps_existing_unless_overwrite():
    target = {"a": {"x": 1}, "b": 1}
    merge(target, {"a": {"y": 2}, "b": 2, "c": 3})
    assert target == {"a": {"x": 1, "y": 2}, "b": 1, "c": 3}

    merge(target, {"b": 2}, overwrite=True)
    assert target["b"] == 2
