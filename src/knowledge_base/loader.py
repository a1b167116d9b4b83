"""Knowledge base loading and indexing.

Reads the archetype registry, keyword map, deviation registry and problem
corpus from JSON, then builds the flat lookup indexes used by the analyzer:

- keyword index: lowercase keyword -> KeywordEntry (archetypes signalled)
- trigger index: lowercase trigger -> TriggerEntry (deviations signalled)
- archetype index: archetype code -> related deviation codes
- compiled detection patterns per deviation

A missing or unreadable file degrades to an empty table with a warning.
The only lookup that raises is ``get_archetype`` for an unknown code.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .config import KnowledgeBaseConfig, TriggerWeightConfig, get_config
from .patterns import CompiledPattern, compile_pattern
from .schema import (
    Archetype,
    Deviation,
    KeywordEntry,
    Problem,
    StrongSignal,
    TriggerSpec,
)

logger = logging.getLogger(__name__)


class KnowledgeBaseError(Exception):
    """Base error for knowledge-base lookups."""


class ArchetypeNotFoundError(KnowledgeBaseError, KeyError):
    """Raised when an archetype is requested by a code that does not exist."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Archetype {code} not found")

    def __str__(self) -> str:
        return self.args[0]


@dataclass
class TriggerEntry:
    """A deviation trigger phrase and the deviations it signals."""
    keyword: str
    weight: float
    deviations: list[str] = field(default_factory=list)


def normalize_code(code: Optional[str]) -> str:
    """Normalize an archetype code: "a1-CapitalStructure " -> "A1"."""
    if not code:
        return ""
    return str(code).strip().split("-", 1)[0].strip().upper()


def calculate_trigger_weight(keyword: str, weights: Optional[TriggerWeightConfig] = None) -> float:
    """Weight of a deviation trigger phrase, from its word count.

    Phrases of three or more words weigh the most; single words only count
    heavily when they contain one of the configured high-value words.
    """
    weights = weights or TriggerWeightConfig()
    word_count = len(keyword.split())
    if word_count >= 3:
        return weights.multi_word_weight
    if word_count == 2:
        return weights.two_word_weight
    if any(w in keyword for w in weights.high_value_words):
        return weights.high_value_weight
    return weights.default_weight


class KnowledgeBase:
    """Read-only registry of archetypes, keywords, deviations and problems."""

    def __init__(
        self,
        archetypes: Optional[list[Archetype]] = None,
        keywords: Optional[list[KeywordEntry]] = None,
        strong_signals: Optional[list[StrongSignal]] = None,
        deviations: Optional[list[Deviation]] = None,
        problems: Optional[list[Problem]] = None,
        config: Optional[KnowledgeBaseConfig] = None,
    ):
        self.config = config or get_config()
        self.strong_signals = list(strong_signals or [])
        self.problems = list(problems or [])

        self._archetypes: dict[str, Archetype] = {}
        for arch in archetypes or []:
            code = normalize_code(arch.code)
            if code in self._archetypes:
                logger.warning("Duplicate archetype code %s ignored", code)
                continue
            signals = [s for s in self.strong_signals if normalize_code(s.archetype) == code]
            self._archetypes[code] = arch.model_copy(
                update={"code": code, "strong_signals": list(arch.strong_signals) + signals}
            )

        self._deviations: dict[str, Deviation] = {}
        for dev in deviations or []:
            code = dev.code.strip().upper()
            if code in self._deviations:
                logger.warning("Duplicate deviation code %s ignored", code)
                continue
            self._deviations[code] = dev.model_copy(update={"code": code})

        self._archetype_positions = {c: i for i, c in enumerate(self._archetypes)}
        self._deviation_positions = {c: i for i, c in enumerate(self._deviations)}

        self.keyword_index = self._build_keyword_index(keywords or [])
        self.trigger_index = self._build_trigger_index()
        self.archetype_index = self._build_archetype_index()
        self.compiled_patterns = self._compile_patterns()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> "KnowledgeBase":
        return cls()

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        config: Optional[KnowledgeBaseConfig] = None,
    ) -> "KnowledgeBase":
        """Build from a dict with archetypes/keywords/strong_signals/deviations/problems."""
        return cls(
            archetypes=_parse_models(data.get("archetypes"), Archetype, "archetype"),
            keywords=_parse_models(data.get("keywords"), KeywordEntry, "keyword"),
            strong_signals=_parse_models(data.get("strong_signals"), StrongSignal, "strong signal"),
            deviations=_parse_models(data.get("deviations"), Deviation, "deviation"),
            problems=_parse_problems(data.get("problems")),
            config=config,
        )

    @classmethod
    def from_directory(
        cls,
        data_dir: Union[str, Path, None] = None,
        config: Optional[KnowledgeBaseConfig] = None,
    ) -> "KnowledgeBase":
        """Load all registry files from a directory."""
        config = config or get_config()
        root = Path(data_dir) if data_dir else config.resolve_data_dir()
        files = config.files

        archetypes = _read_json(root / files.archetypes)
        keywords = _read_json(root / files.keywords)
        deviations = _read_json(root / files.deviations)
        problems = _read_json(root / files.problems)

        kb = cls.from_dict(
            {
                "archetypes": archetypes.get("archetypes"),
                "keywords": keywords.get("keywords"),
                "strong_signals": keywords.get("strong_signals"),
                "deviations": deviations.get("deviations"),
                "problems": problems.get("problems"),
            },
            config=config,
        )
        logger.info(
            "Loaded knowledge base from %s: %d archetypes, %d deviations, %d problems",
            root, len(kb.archetypes), len(kb.deviations), len(kb.problems),
        )
        return kb

    def _build_keyword_index(self, keywords: list[KeywordEntry]) -> dict[str, KeywordEntry]:
        index: dict[str, KeywordEntry] = {}
        for entry in keywords:
            archetypes = [normalize_code(a) for a in entry.archetypes if a]
            existing = index.get(entry.keyword)
            if existing:
                merged = existing.archetypes + [a for a in archetypes if a not in existing.archetypes]
                index[entry.keyword] = existing.model_copy(
                    update={"weight": max(existing.weight, entry.weight), "archetypes": merged}
                )
            else:
                index[entry.keyword] = entry.model_copy(update={"archetypes": archetypes})

        # Archetype keywords without a weighted mapping count once.
        for code, arch in self._archetypes.items():
            for kw in arch.keywords:
                kw = kw.strip().lower()
                if not kw:
                    continue
                entry = index.get(kw)
                if entry is None:
                    index[kw] = KeywordEntry(keyword=kw, weight=1.0, archetypes=[code])
                elif code not in entry.archetypes:
                    index[kw] = entry.model_copy(update={"archetypes": entry.archetypes + [code]})
        return index

    def _build_trigger_index(self) -> dict[str, TriggerEntry]:
        weights = self.config.trigger_weights
        index: dict[str, TriggerEntry] = {}
        for code, dev in self._deviations.items():
            for trigger in dev.detection_triggers:
                if isinstance(trigger, TriggerSpec):
                    keyword = trigger.keyword.strip().lower()
                    weight = trigger.weight
                else:
                    keyword = trigger.strip().lower()
                    weight = None
                if not keyword:
                    continue
                if weight is None:
                    weight = calculate_trigger_weight(keyword, weights)

                entry = index.get(keyword)
                if entry is None:
                    index[keyword] = TriggerEntry(keyword=keyword, weight=weight, deviations=[code])
                elif code not in entry.deviations:
                    entry.deviations.append(code)
        return index

    def _build_archetype_index(self) -> dict[str, list[str]]:
        index: dict[str, list[str]] = {}
        for code, dev in self._deviations.items():
            for arch in dev.related_archetypes:
                arch_code = normalize_code(arch)
                if not arch_code:
                    continue
                index.setdefault(arch_code, [])
                if code not in index[arch_code]:
                    index[arch_code].append(code)
        return index

    def _compile_patterns(self) -> dict[str, list[CompiledPattern]]:
        compiled: dict[str, list[CompiledPattern]] = {}
        for code, dev in self._deviations.items():
            patterns = []
            for raw in dev.detection_patterns:
                pattern = compile_pattern(raw, owner=code)
                if pattern is not None:
                    patterns.append(pattern)
            compiled[code] = patterns
        return compiled

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def archetypes(self) -> list[Archetype]:
        return list(self._archetypes.values())

    @property
    def deviations(self) -> list[Deviation]:
        return list(self._deviations.values())

    def get_archetype(self, code: str) -> Archetype:
        """Look up an archetype by code.

        Raises:
            ArchetypeNotFoundError: If no archetype has that code.
        """
        arch = self.find_archetype(code)
        if arch is None:
            raise ArchetypeNotFoundError(code)
        return arch

    def find_archetype(self, code: Optional[str]) -> Optional[Archetype]:
        return self._archetypes.get(normalize_code(code))

    def get_deviation(self, code: Optional[str]) -> Optional[Deviation]:
        if not code:
            return None
        return self._deviations.get(str(code).strip().upper())

    def archetype_order(self, code: str) -> int:
        """Registry position of an archetype, used to break ties."""
        return self._archetype_positions.get(normalize_code(code), len(self._archetype_positions))

    def deviation_order(self, code: str) -> int:
        """Registry position of a deviation, used to break ties."""
        return self._deviation_positions.get(code, len(self._deviation_positions))

    def deviations_for_archetype(self, code: str) -> list[Deviation]:
        return [self._deviations[c] for c in self.archetype_index.get(normalize_code(code), [])]

    def keywords_for_archetype(self, code: str) -> list[KeywordEntry]:
        """Keywords signalling the archetype, strongest first."""
        code = normalize_code(code)
        entries = [e for e in self.keyword_index.values() if code in e.archetypes]
        entries.sort(key=lambda e: e.weight, reverse=True)
        return entries

    def problems_for_archetype(self, code: str) -> list[Problem]:
        code = normalize_code(code)
        return [p for p in self.problems if normalize_code(p.archetype) == code]

    def get_problem(self, problem_id: str) -> Optional[Problem]:
        for problem in self.problems:
            if problem.id == problem_id:
                return problem
        return None

    def stats(self) -> dict[str, int]:
        return {
            "archetypes": len(self._archetypes),
            "keywords": len(self.keyword_index),
            "strong_signals": len(self.strong_signals),
            "deviations": len(self._deviations),
            "triggers": len(self.trigger_index),
            "patterns": sum(len(p) for p in self.compiled_patterns.values()),
            "problems": len(self.problems),
        }


def _read_json(path: Path) -> dict[str, Any]:
    """Read a registry file; missing or malformed files yield an empty dict."""
    if not path.exists():
        logger.warning("Knowledge base file not found: %s", path)
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Could not read knowledge base file %s: %s", path, e)
        return {}
    if isinstance(data, list):
        # A bare list is accepted for any single-table file.
        return {key: data for key in ("archetypes", "keywords", "deviations", "problems")}
    if not isinstance(data, dict):
        logger.warning("Unexpected content in %s; expected an object", path)
        return {}
    return data


def _parse_models(items: Any, model: type, label: str) -> list:
    """Validate a list of records, skipping malformed ones with a warning."""
    results = []
    for item in items or []:
        try:
            results.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed %s record: %s", label, e.errors()[0].get("msg"))
    return results


def _parse_problems(items: Any) -> list[Problem]:
    results = []
    for item in items or []:
        if not isinstance(item, dict):
            logger.warning("Skipping malformed problem record of type %s", type(item).__name__)
            continue
        try:
            results.append(Problem.from_record(item))
        except ValidationError as e:
            logger.warning("Skipping malformed problem %s: %s", item.get("id"), e.errors()[0].get("msg"))
    return results


def load_knowledge_base(
    data_dir: Union[str, Path, None] = None,
    config: Optional[KnowledgeBaseConfig] = None,
) -> KnowledgeBase:
    """Load the knowledge base from a directory (bundled data by default)."""
    return KnowledgeBase.from_directory(data_dir, config=config)
