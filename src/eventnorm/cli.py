from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .config import EngineConfig, PipelineConfig
from .core.engine import read_json
from .core.exceptions import EventNormError
from .core.loader import RulesLoader
from .core.parsers import BUILTIN_PARSERS, Parser
from .core.validation import validate_with_warnings
from .io import read_jsonl, stream_jsonl, write_csv, write_jsonl
from .pipeline.service import EventService, StreamingService

logger = logging.getLogger("eventnorm")


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="eventnorm", description="Normalize raw events with JSON translation rules.")
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="translate a JSONL file of raw events")
    run.add_argument("--rules", required=True, help="rules directory")
    run.add_argument("--input", required=True, help="raw events, one JSON object per line")
    run.add_argument("--output", required=True, help="translated events (JSONL)")
    run.add_argument("--unparsed", help="events that could not be translated (JSONL)")
    run.add_argument("--csv", help="also write the translated events as a flattened CSV")
    run.add_argument("--parser", default="json", choices=sorted(BUILTIN_PARSERS), help="raw event parser")
    run.add_argument("--source-type", action="append", dest="source_types",
                     help="register the parser for this source type only (repeatable)")
    run.add_argument("--stream", action="store_true", help="use the threaded pipeline")
    run.add_argument("--max-workers", type=int, help="cap on per-source-type processors (with --stream)")
    run.add_argument("--strict", action="store_true", help="fail on the first broken rule file")

    validate = sub.add_parser("validate", help="check a rules directory or a single rule file")
    validate.add_argument("path")
    validate.add_argument("--home", help="rules directory that includes resolve against (default: the file's folder)")

    return ap


def _run(args: argparse.Namespace) -> int:
    engine = EngineConfig()
    report = RulesLoader(args.rules, config=engine, strict=args.strict).load()

    parser: Parser = BUILTIN_PARSERS[args.parser]
    parsers: Dict[str, Parser] = {st: parser for st in (args.source_types or report.source_types)}

    if args.stream:
        config = PipelineConfig(max_workers=args.max_workers)
        unparsed: List[dict] = []
        service = StreamingService(
            parsers, report.translators, config=config, engine=engine, on_unparsed=unparsed.append)
        count = write_jsonl(service.stream(read_jsonl(args.input)), args.output)
        service.join()
        if args.unparsed:
            write_jsonl(unparsed, args.unparsed)
        counters = {"translated": count, "unparsed": len(unparsed)}
    else:
        blocking = EventService(parsers, report.translators, engine=engine)
        counters = stream_jsonl(blocking, args.input, args.output, unparsed_path=args.unparsed)

    if args.csv:
        write_csv(read_jsonl(args.output), args.csv)

    print(json.dumps(counters, sort_keys=True))
    return 0 if report.ok else 2


def _validate(args: argparse.Namespace) -> int:
    path = Path(args.path)
    if path.is_dir():
        report = RulesLoader(path).load()
        print(json.dumps({"ok": report.ok, "loaded": report.loaded, "failed": report.failed}, indent=2))
        return 0 if report.ok else 1

    result = validate_with_warnings(read_json(path), name=path.stem, home=args.home or path.parent)
    print(json.dumps(result, indent=2))
    return 0 if result["ok"] else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "run":
            return _run(args)
        return _validate(args)
    except (EventNormError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
