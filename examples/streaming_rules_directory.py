"""
Streaming From a Rules Directory
Use case: A rules tree on disk, many source types, events translated on worker threads.
- Rule files are grouped by source type through .metadata files
- A shared file is pulled in with @include
- Unroutable events are collected separately
- Output order is per source type, not global
"""

import json
import tempfile
from pathlib import Path

from eventnorm import PipelineConfig, StreamingService, load_rules
from eventnorm.core.parsers import json_parser

RULES = {
    "common/ocsf.json": [{"_": {"@value": {"metadata": {"product": "demo"}}}}],
    "web/.metadata": {"type": "json:web"},
    "web/default.json": {"rules": [
        {"path": {"@move": {"name": "http_request.url.path"}}},
        {"status": {"@move": {"name": "http_response.code", "type": "integer"}}},
        {"@include": "common/ocsf.json"},
    ]},
    "dns/.metadata": {"type": "json:dns"},
    "dns/default.json": {"rules": [
        {"qname": {"@move": "query.hostname"}},
        {"@include": "common/ocsf.json"},
    ]},
}


def write_rules(home):
    for name, doc in RULES.items():
        path = home / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(doc), encoding="utf-8")


def generate(n):
    for i in range(n):
        if i % 3 == 0:
            yield {"sourceType": "json:dns", "rawEvent": json.dumps({"qname": f"host{i}.example"})}
        elif i % 7 == 0:
            yield {"sourceType": "json:mail", "rawEvent": "{}"}
        else:
            yield {"sourceType": "json:web", "rawEvent": json.dumps({"path": f"/p/{i}", "status": "200"})}


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        home = Path(tmp)
        write_rules(home)
        translators = load_rules(home)

        unparsed = []
        service = StreamingService(
            {"json:*": json_parser},
            translators,
            config=PipelineConfig(queue_capacity=16, max_workers=4),
            on_unparsed=unparsed.append,
        )
        results = list(service.stream(generate(30)))
        service.join()

        print(f"translated={len(results)} unparsed={len(unparsed)}")
        print(json.dumps(results[:2], indent=2))
