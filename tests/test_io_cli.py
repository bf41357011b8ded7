import json

import pytest

from eventnorm import cli
from eventnorm.core.parsers import json_parser
from eventnorm.io import read_jsonl, stream_jsonl, to_dataframe, write_csv, write_jsonl
from eventnorm.pipeline.service import EventService


@pytest.fixture
def raw_events(tmp_path):
    path = tmp_path / "in.jsonl"
    lines = [
        json.dumps({"sourceType": "json:app", "rawEvent": json.dumps({"event": "login", "user": "bob"})}),
        "",
        json.dumps({"sourceType": "json:app", "rawEvent": json.dumps({"msg": "hello"})}),
        json.dumps({"rawEvent": "{}"}),
        json.dumps({"sourceType": "other", "rawEvent": "{}"}),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_read_jsonl_rejects_non_objects(tmp_path):
    path = tmp_path / "bad.jsonl"
    path.write_text('{"a": 1}\n[1]\n', encoding="utf-8")
    with pytest.raises(ValueError):
        list(read_jsonl(path))


def test_write_jsonl_round_trip(tmp_path):
    path = tmp_path / "out.jsonl"
    assert write_jsonl([{"a": 1}, {"b": [2]}], path) == 2
    assert list(read_jsonl(path)) == [{"a": 1}, {"b": [2]}]


def test_stream_jsonl(rules_home, raw_events, tmp_path):
    service = EventService.from_rules(rules_home, {"json:app": json_parser})
    out, unparsed = tmp_path / "out.jsonl", tmp_path / "unparsed.jsonl"

    counters = stream_jsonl(service, raw_events, out, unparsed_path=unparsed)

    assert counters == {"translated": 2, "MissingSourceType": 1, "NoParser": 1}
    translated = list(read_jsonl(out))
    assert translated[0]["class_uid"] == 3002
    assert translated[1]["message"] == "hello"
    assert len(list(read_jsonl(unparsed))) == 2


def test_to_dataframe_flattens_paths():
    df = to_dataframe([{"actor": {"user": {"name": "bob"}}, "n": 1}, {"n": 2}])
    assert set(df.columns) == {"actor.user.name", "n"}
    assert df["n"].tolist() == [1, 2]
    assert to_dataframe([]).empty


def test_write_csv(tmp_path):
    path = tmp_path / "out.csv"
    assert write_csv([{"a": {"b": 1}}, {"a": {"b": 2}}], path) == 2
    assert path.read_text(encoding="utf-8").splitlines()[0] == "a.b"


def test_cli_run(rules_home, raw_events, tmp_path, capsys):
    out, csv = tmp_path / "out.jsonl", tmp_path / "out.csv"
    code = cli.main(["run", "--rules", str(rules_home), "--input", str(raw_events), "--output", str(out),
                     "--csv", str(csv)])

    assert code == 0
    counters = json.loads(capsys.readouterr().out)
    assert counters["translated"] == 2
    assert csv.exists()


def test_cli_run_streaming(rules_home, raw_events, tmp_path, capsys):
    out, unparsed = tmp_path / "out.jsonl", tmp_path / "unparsed.jsonl"
    code = cli.main(["run", "--rules", str(rules_home), "--input", str(raw_events), "--output", str(out),
                     "--unparsed", str(unparsed), "--stream"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"translated": 2, "unparsed": 2}
    assert sorted(json.dumps(e, sort_keys=True) for e in read_jsonl(unparsed)) == sorted([
        json.dumps({"rawEvent": "{}"}, sort_keys=True),
        json.dumps({"sourceType": "other", "rawEvent": "{}"}, sort_keys=True),
    ])


def test_cli_validate(rules_home, tmp_path, write, capsys):
    assert cli.main(["validate", str(rules_home)]) == 0
    assert json.loads(capsys.readouterr().out)["loaded"] == {"json:app": ["default", "login"]}

    assert cli.main(["validate", str(rules_home / "app" / "login.json"), "--home", str(rules_home)]) == 0
    capsys.readouterr()

    bad = write(tmp_path / "bad.json", {"rules": [{"a": {"@frob": 1}}]})
    assert cli.main(["validate", str(bad)]) == 1


def test_cli_missing_rules(tmp_path, raw_events):
    code = cli.main(["run", "--rules", str(tmp_path / "none"), "--input", str(raw_events),
                     "--output", str(tmp_path / "o.jsonl")])
    assert code == 1
