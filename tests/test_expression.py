import pytest

from eventnorm.core.exceptions import ExpressionSyntaxError, RuleError
from eventnorm.core.expression import compile_expression, tokenize


def evaluate(expr, data):
    return compile_expression(expr).test(data)


def test_conjunction_over_code_and_host():
    data = {"code": 111010, "host": "10.1.1.1"}
    assert evaluate("code = 111010 and host != null", data)
    assert not evaluate("code = 111011 and host != null", data)
    assert not evaluate("code = 111010 and host = null", data)
    assert not evaluate("code = 111010 and host != null", {"code": 111010})


@pytest.mark.parametrize("expr, data, expected", [
    ("status = 'Success'", {"status": "success"}, True),
    ("status == \"success\"", {"status": "SUCCESS"}, True),
    ("status <> 'success'", {"status": "failure"}, True),
    ("count > 5", {"count": "7"}, True),
    ("count >= 5", {"count": 5}, True),
    ("count < 5", {"count": "abc"}, False),
    ("count <= 2.5", {"count": 2.5}, True),
    ("x = -5", {"x": -5}, True),
    ("code = 0x10", {"code": 16}, True),
    ("missing = null", {}, True),
    ("missing != 'x'", {}, False),
    ("missing > 1", {}, False),
    ("missing is null", {}, True),
    ("host is not_null", {"host": "a"}, True),
    ("host is not null", {}, False),
    ("host is_not null", {"host": "a"}, True),
    ("user like 'adm*'", {"user": "Administrator"}, True),
    ("user like 'adm?n'", {"user": "admin"}, True),
    ("user not_like 'adm*'", {"user": "guest"}, True),
    ("code like 5", {"code": 1500}, True),
    ("code like 5", {"code": "port 5 open"}, True),
    ("code like 5", {"code": 42}, False),
    ("code not_like 5", {"code": 42}, True),
    ("msg match '^err.*'", {"msg": "ERROR: disk full"}, True),
    ("msg not_match 'err.*'", {"msg": "ok"}, True),
    ("path starts_with '/tmp'", {"path": "/TMP/x"}, True),
    ("path ends_with '.exe'", {"path": "c:\\a.EXE"}, True),
    ("name contains 'dmi'", {"name": "Admin"}, True),
    ("tags contains 'b'", {"tags": ["a", "b"]}, True),
    ("code in [1, 2, 3]", {"code": 2}, True),
    ("code not_in [1, 2, 3]", {"code": 4}, True),
    ("code in ['a', 'b']", {"code": "B"}, True),
    ("ip in 10.0.0.0/8", {"ip": "10.1.2.3"}, True),
    ("ip in '192.168.0.0/16'", {"ip": "10.1.2.3"}, False),
    ("ip not_in [192.168.0.0/16, 172.16.0.0/12]", {"ip": "10.1.2.3"}, True),
    ("flag = true", {"flag": True}, True),
    ("flag = true", {"flag": "TRUE"}, True),
    ("flag = false", {"flag": True}, False),
    ("users.name = 'bob'", {"users": [{"name": "alice"}, {"name": "bob"}]}, True),
    ("a.b = 1 or c = 2", {"c": 2}, True),
    ("a = 1 and (b = 2 or c = 3)", {"a": 1, "c": 3}, True),
    ("not (a = 1)", {"a": 2}, True),
    ("!(a = 1)", {"a": 1}, False),
    ("'odd field' = 'x'", {"odd field": "x"}, True),
    ("obj = 'x'", {"obj": {"k": "x"}}, False),
    ("ts > `2020-01-01T00:00:00Z`", {"ts": "2021-06-01T00:00:00Z"}, True),
    ("ts < `2020-01-01`", {"ts": 1262304000000}, True),
    ("ts < `-1d`", {"ts": "2000-01-01T00:00:00Z"}, True),
])
def test_comparisons(expr, data, expected):
    assert evaluate(expr, data) is expected


def test_evaluation_does_not_mutate():
    data = {"a": {"b": [1, 2]}}
    evaluate("a.b in [2] and missing is null", data)
    assert data == {"a": {"b": [1, 2]}}


def test_tokenize_kinds():
    kinds = [t.kind for t in tokenize("a >= 1 and b in [x, 'y']")]
    assert kinds == ["word", "op", "number", "word", "word", "word", "lbracket", "word", "comma", "string", "rbracket"]


@pytest.mark.parametrize("expr", [
    "",
    "a =",
    "(a = 1",
    "a ~ 1",
    "a = 1 b",
    "and = 1",
    "a frobs 1",
    "a is maybe",
    "a match '('",
    "ts > `not a date`",
    "a in [1 2]",
])
def test_syntax_errors(expr):
    with pytest.raises(ExpressionSyntaxError):
        compile_expression(expr)


def test_syntax_error_is_rule_error_with_position():
    with pytest.raises(RuleError) as info:
        compile_expression("a = 1 )")

    assert info.value.position == 6
    assert info.value.text == "a = 1 )"
