from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..config import EngineConfig, SourceMetadata
from .engine import JsonReader, compile_rule, read_json
from .exceptions import RuleError
from .parsers import Parser
from .translators import SourceTypeIndex, Translators

logger = logging.getLogger(__name__)

METADATA_FILE = ".metadata"
RULE_SUFFIX = ".json"


@dataclass
class LoadReport:
    """Outcome of scanning a rules tree."""
    home: Path
    translators: SourceTypeIndex[Translators]
    loaded: Dict[str, List[str]] = field(default_factory=dict)
    failed: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def source_types(self) -> List[str]:
        return sorted(set(self.loaded) | set(self.failed))


class RulesLoader:
    """
    Walks a rules directory and compiles every ``*.json`` file below a ``.metadata``
    that declares the source type. Nested directories inherit the source type unless
    they carry their own ``.metadata``. Entries are visited in lexical order, which
    fixes the registration (and so matching) order of transformers.

    A rule file that fails to compile is logged and skipped; the rest of its
    source type still loads. ``strict=True`` turns the first failure into a RuleError.
    """

    def __init__(
        self,
        home: Union[str, Path],
        *,
        config: Optional[EngineConfig] = None,
        reader: Optional[JsonReader] = None,
        parsers: Optional[Mapping[str, Parser]] = None,
        strict: bool = False,
    ) -> None:
        self.home = Path(home).resolve()
        self.config = config or EngineConfig()
        self.reader = reader or read_json
        self.parsers = parsers
        self.strict = strict
        self._log = self.config.log(logger)

    def load(self) -> LoadReport:
        if not self.home.is_dir():
            raise RuleError(f"Rules path {self.home} not found")

        self._log.info("Scanning %s for translation rules", self.home)
        index: SourceTypeIndex[Translators] = SourceTypeIndex()
        report = LoadReport(self.home, index)
        by_type: Dict[str, Translators] = {}

        self._walk(self.home, self._source_type(self.home, None), by_type, report)

        for source_type, translators in by_type.items():
            index.register(source_type, translators)

        for source_type, failures in report.failed.items():
            self._log.error(
                "%s: %d rule file(s) failed to load, its translators are incomplete: %s",
                source_type, len(failures), ", ".join(sorted(failures)))

        return report

    def _source_type(self, directory: Path, inherited: Optional[str]) -> Optional[str]:
        meta = directory / METADATA_FILE
        if not meta.is_file():
            return inherited

        try:
            return SourceMetadata.model_validate(self.reader(meta)).type
        except (OSError, ValueError, ValidationError) as exc:
            if self.strict:
                raise RuleError(f"Invalid {meta}: {exc}") from exc

            self._log.error("Invalid %s, keeping source type %r: %s", meta, inherited, exc)
            return inherited

    def _walk(self, directory: Path, source_type: Optional[str], by_type: Dict[str, Translators], report: LoadReport) -> None:
        for path in sorted(directory.iterdir(), key=lambda p: p.name):
            if path.is_dir():
                self._log.info("Loading rules from: %s", path)
                self._walk(path, self._source_type(path, source_type), by_type, report)

            elif source_type is not None and path.is_file() and path.name.endswith(RULE_SUFFIX):
                self._add(path, source_type, by_type, report)

    def _add(self, path: Path, source_type: str, by_type: Dict[str, Translators], report: LoadReport) -> None:
        translators = by_type.get(source_type)
        if translators is None:
            translators = Translators(source_type, strict_defaults=self.config.strict_defaults)
            by_type[source_type] = translators

        relative = str(path.relative_to(self.home))
        try:
            document = self.reader(path)
            if not isinstance(document, dict):
                raise RuleError("rule file must contain a single JSON object")

            transformer = compile_rule(
                document, name=path.stem, home=self.home, reader=self.reader, parsers=self.parsers)
            translators.add(transformer)

        except (RuleError, OSError, ValueError) as exc:
            if self.strict:
                raise RuleError(f"{relative}: {exc}") from exc

            self._log.error("%s: unable to load rule %s: %s", source_type, relative, exc)
            report.failed.setdefault(source_type, {})[relative] = str(exc)
            self.config.count("loader.failed")
            return

        self._log.info("%s: add rule: %s", source_type, path.name)
        report.loaded.setdefault(source_type, []).append(transformer.name)


def load_rules(home: Union[str, Path], **kwargs) -> SourceTypeIndex[Translators]:
    return RulesLoader(home, **kwargs).load().translators
