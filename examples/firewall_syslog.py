"""
Firewall Syslog Normalization
Use case: Key/value firewall logs and JSON auth events go through one blocking service.
- A pattern parser splits the syslog header from the kv body
- Enum maps action strings to numeric ids, keeping unknowns under 'unmapped'
- A conditional rule only matches deny events
- Failures are classified rather than raised, via try_process
"""

import json

from eventnorm import EventService, RuleBuilder, Translators
from eventnorm.core.parsers import PatternParser, json_parser, kv_parser

header = PatternParser("#{time: string(15)} #{host} #{_program}: #{body}")


def firewall_parser(text):
    data = header(text)
    if data is None:
        return None
    fields = kv_parser(data.pop("body")) or {}
    fields.update(data)
    return fields


deny = (RuleBuilder(when="action = 'deny'")
        .move("src", "src_endpoint.ip", type="string")
        .move("dst", "dst_endpoint.ip")
        .move("dport", "dst_endpoint.port", type="integer")
        .enum("action", "action_id", {"allow": 1, "deny": 2}, other="action")
        .move("host", "device.hostname")
        .move("time", "time_dt")
        .value("class_uid", 4001)
        .value("severity_id", 3)
        .compile("deny"))

default = (RuleBuilder()
           .move("src", "src_endpoint.ip")
           .move("dst", "dst_endpoint.ip")
           .enum("action", "action_id", {"allow": 1, "deny": 2}, other="action")
           .move("host", "device.hostname")
           .move("time", "time_dt")
           .value("class_uid", 4001)
           .compile("default"))

auth = (RuleBuilder()
        .move("user", "actor.user.name")
        .lookup("result", "status_id", {"ok": 1, "failed": 2}, default=99)
        .value("class_uid", 3002)
        .compile("default"))

service = EventService(
    parsers={"syslog:fw": firewall_parser, "json:auth": json_parser},
    translators={
        "syslog:fw": Translators("syslog:fw").add(deny).add(default),
        "json:auth": Translators("json:auth").add(auth),
    },
)

raw_events = [
    {"sourceType": "syslog:fw", "tenant": "acme",
     "rawEvent": "Oct 30 09:15:00 fw01 kernel: action=deny src=10.0.0.5 dst=192.0.2.9 dport=443"},
    {"sourceType": "syslog:fw",
     "rawEvent": "Oct 30 09:15:02 fw01 kernel: action=reset src=10.0.0.6 dst=192.0.2.9"},
    {"sourceType": "json:auth", "rawEvent": json.dumps({"user": "alice", "result": "ok"})},
    {"sourceType": "json:auth", "rawEvent": "{broken"},
    {"sourceType": "netflow", "rawEvent": "..."},
]

if __name__ == "__main__":
    for raw in raw_events:
        result, error = service.try_process(raw)
        if error is not None:
            print("FAILED", error.reason.value, "-", error)
        else:
            print(json.dumps(result, indent=2, default=str))
