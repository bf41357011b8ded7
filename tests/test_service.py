from collections import Counter

import pytest

from eventnorm.config import EngineConfig, FieldNames, PipelineConfig
from eventnorm.core.engine import compile_rule
from eventnorm.core.exceptions import (
    MissingRawDataError,
    MissingSourceTypeError,
    NoParserError,
    NoTranslatorError,
    ParserFailedError,
    Reason,
    TranslationFailedError,
    TranslatorError,
    UnsupportedEventError,
)
from eventnorm.core.parsers import json_parser
from eventnorm.core.translators import Translators
from eventnorm.pipeline.service import EventService


class Exploding:
    source_type = "explode"

    def translate(self, data):
        raise RuntimeError("rule blew up")


@pytest.fixture
def counts():
    return Counter()


@pytest.fixture
def service(message_translators, counts):
    picky = Translators("picky")
    picky.add(compile_rule({"when": "kind = 'a'", "rules": []}, name="a"))

    parsers = {"json:*": json_parser, "explode": json_parser, "picky": json_parser, "orphan": json_parser}
    translators = {"json:*": message_translators, "explode": Exploding(), "picky": picky}
    engine = EngineConfig(metrics_increment=lambda name, value: counts.update({name: value}))
    return EventService(parsers, translators, engine=engine)


@pytest.mark.parametrize("data, error, reason", [
    ({"rawEvent": "{}"}, MissingSourceTypeError, Reason.MISSING_SOURCE_TYPE),
    ({"sourceType": "", "rawEvent": "{}"}, MissingSourceTypeError, Reason.MISSING_SOURCE_TYPE),
    ({"sourceType": 42, "rawEvent": "{}"}, MissingSourceTypeError, Reason.MISSING_SOURCE_TYPE),
    ({"sourceType": ["json:app"], "rawEvent": "{}"}, MissingSourceTypeError, Reason.MISSING_SOURCE_TYPE),
    ({"sourceType": "nope", "rawEvent": "{}"}, NoParserError, Reason.NO_PARSER),
    ({"sourceType": "orphan", "rawEvent": "{}"}, NoTranslatorError, Reason.NO_TRANSLATOR),
    ({"sourceType": "json:app"}, MissingRawDataError, Reason.MISSING_RAW_DATA),
    ({"sourceType": "json:app", "rawEvent": ""}, MissingRawDataError, Reason.MISSING_RAW_DATA),
    ({"sourceType": "json:app", "rawEvent": "{oops"}, ParserFailedError, Reason.PARSER_ERROR),
    ({"sourceType": "json:app", "rawEvent": "[1, 2]"}, UnsupportedEventError, Reason.UNSUPPORTED_EVENT),
    ({"sourceType": "explode", "rawEvent": "{}"}, TranslationFailedError, Reason.TRANSLATOR_ERROR),
    ({"sourceType": "picky", "rawEvent": '{"kind": "b"}'}, UnsupportedEventError, Reason.UNSUPPORTED_EVENT),
])
def test_failures_are_classified(service, data, error, reason):
    with pytest.raises(error) as info:
        service.process(data)

    assert isinstance(info.value, TranslatorError)
    assert info.value.reason is reason
    assert str(info.value).startswith(reason.value + ":")


def test_underlying_errors_are_chained(service):
    with pytest.raises(ParserFailedError) as info:
        service.process({"sourceType": "json:app", "rawEvent": "{oops"})
    assert isinstance(info.value.__cause__, ValueError)

    with pytest.raises(TranslationFailedError) as info:
        service.process({"sourceType": "explode", "rawEvent": "{}"})
    assert isinstance(info.value.__cause__, RuntimeError)
    assert info.value.source_type == "explode"


def test_success_stamps_context(service, counts):
    out = service.process({"sourceType": "json:app", "rawEvent": '{"msg": "hi"}', "tenant": "acme"})
    assert out == {
        "message": "hi",
        "unmapped": {"customer_uid": "acme", "source_type": "json:app"},
        "metadata": {"uid": "uid-1"},
    }
    assert counts["service.translated"] == 1


def test_raw_payload_may_be_structured(service):
    out = service.process({"sourceType": "json:app", "rawEvent": {"msg": "hi"}})
    assert out["message"] == "hi"


def test_try_process_and_metrics(service, counts):
    result, error = service.try_process({"sourceType": "nope", "rawEvent": "{}"})
    assert result is None
    assert error.reason is Reason.NO_PARSER
    assert counts["service.NoParser"] == 1

    result, error = service.try_process({"sourceType": "json:x", "rawEvent": '{"msg": 1}'})
    assert error is None and result["message"] == 1


def test_custom_field_names(message_translators):
    config = PipelineConfig(fields=FieldNames(source_type="st", raw_event="raw", tenant="org", customer_uid="org_id"))
    service = EventService({"json": json_parser}, {"json": message_translators}, config=config)
    out = service.process({"st": "json", "raw": '{"msg": "x"}', "org": "o1"})
    assert out["unmapped"] == {"org_id": "o1", "source_type": "json"}


def test_from_rules(rules_home):
    service = EventService.from_rules(rules_home, {"json:app": json_parser})

    out = service.process({"sourceType": "json:app", "rawEvent": '{"event": "login", "user": "bob"}'})
    assert out["actor"] == {"user": {"name": "bob"}}
    assert out["category_uid"] == 3
    assert out["class_uid"] == 3002

    out = service.process({"sourceType": "json:app", "rawEvent": '{"msg": "hello"}'})
    assert out["message"] == "hello"
