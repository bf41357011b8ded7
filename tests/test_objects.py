import pytest

from eventnorm.core.objects import split_file_path, to_file, to_fingerprint, to_url
from eventnorm.core.types import convert, is_known_type


@pytest.mark.parametrize("path, expected", [
    ("", {"name": "", "path": "", "type_id": 1}),
    ("/", {"name": "/", "path": "/", "type_id": 1}),
    ("test.txt", {"name": "test.txt", "path": "test.txt", "type_id": 1}),
    ("/test.txt", {"parent_folder": "/", "name": "test.txt", "path": "/test.txt", "type_id": 1}),
    ("/tmp/test.txt", {"parent_folder": "/tmp", "name": "test.txt", "path": "/tmp/test.txt", "type_id": 1}),
    ("tmp/test/", {"parent_folder": "tmp", "name": "test", "path": "tmp/test/", "type_id": 1}),
    ("C:\\Windows\\cmd.exe", {"parent_folder": "C:\\Windows", "name": "cmd.exe", "path": "C:\\Windows\\cmd.exe",
                              "type_id": 1}),
])
def test_file_objects(path, expected):
    assert to_file(path) == expected


def test_root_has_no_parent():
    assert split_file_path("/") == (None, "/")
    assert "parent_folder" not in to_file("/")


@pytest.mark.parametrize("length, algorithm_id", [(32, 1), (40, 2), (64, 3), (128, 4)])
def test_fingerprint_algorithm_by_length(length, algorithm_id):
    value = "a" * length
    assert to_fingerprint(value) == {"algorithm_id": algorithm_id, "value": value}


@pytest.mark.parametrize("value", ["abc", "a" * 33, ""])
def test_fingerprint_other(value):
    assert to_fingerprint(value) == {"algorithm": value, "algorithm_id": 99, "value": value}


def test_url_without_host_keeps_text():
    assert to_url("not a url") == {"text": "not a url"}
    assert to_url("") == {"text": "", "scheme": "", "hostname": ""}


def test_type_names():
    assert is_known_type("path:3")
    assert is_known_type("Fingerprint")
    assert not is_known_type("path:x")
    assert not is_known_type("color")


def test_convert_unknown_type_keeps_value(caplog):
    assert convert("x", "color") == "x"
    assert "Invalid type" in caplog.text
