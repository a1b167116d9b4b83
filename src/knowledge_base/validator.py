"""Knowledge base consistency checks."""

import json
from pathlib import Path
from typing import Optional, Union

from .config import KnowledgeBaseConfig, get_config
from .loader import KnowledgeBase, normalize_code
from .patterns import compile_pattern
from .schema import Deviation


class KnowledgeBaseValidator:
    """Validates a loaded knowledge base and reports issues."""

    def validate(self, kb: KnowledgeBase) -> list[str]:
        """Validate the knowledge base and return a list of issues."""
        issues = []
        known_archetypes = {a.code for a in kb.archetypes}

        for dev in kb.deviations:
            issues.extend(self._validate_deviation(dev, known_archetypes))

        for entry in kb.keyword_index.values():
            unknown = [a for a in entry.archetypes if a not in known_archetypes]
            if unknown:
                issues.append(f"[keyword '{entry.keyword}'] Unknown archetypes: {', '.join(unknown)}")

        for signal in kb.strong_signals:
            if normalize_code(signal.archetype) not in known_archetypes:
                issues.append(
                    f"[strong signal {' + '.join(signal.keywords)}] Unknown archetype: {signal.archetype}"
                )

        ids = [p.id for p in kb.problems if p.id]
        duplicates = sorted(set(i for i in ids if ids.count(i) > 1))
        if duplicates:
            issues.append(f"Duplicate problem IDs: {', '.join(duplicates)}")

        for problem in kb.problems:
            prefix = f"[{problem.id or 'problem'}]"
            if problem.archetype and normalize_code(problem.archetype) not in known_archetypes:
                issues.append(f"{prefix} Unknown archetype: {problem.archetype}")
            for code in problem.deviations:
                if kb.get_deviation(code) is None:
                    issues.append(f"{prefix} Unknown deviation: {code}")

        return issues

    def _validate_deviation(self, dev: Deviation, known_archetypes: set[str]) -> list[str]:
        """Validate a single deviation."""
        issues = []
        prefix = f"[{dev.code}]"

        if not dev.name:
            issues.append(f"{prefix} Missing name")

        if not dev.description:
            issues.append(f"{prefix} Missing description")

        if not dev.detection_triggers:
            issues.append(f"{prefix} No detection triggers")

        if not dev.detection_patterns:
            issues.append(f"{prefix} No detection patterns")

        for raw in dev.detection_patterns:
            if compile_pattern(raw, owner=dev.code) is None:
                source = raw if isinstance(raw, str) else raw.pattern
                issues.append(f"{prefix} Invalid pattern: {source}")

        for arch in dev.related_archetypes:
            if normalize_code(arch) not in known_archetypes:
                issues.append(f"{prefix} Unknown related archetype: {arch}")

        return issues


def find_duplicate_codes(data_dir: Path, config: Optional[KnowledgeBaseConfig] = None) -> list[str]:
    """Report duplicate archetype and deviation codes in the raw registry files.

    The loader keeps only the first record per code, so duplicates are only
    visible in the source files.
    """
    config = config or get_config()
    issues = []
    checks = [
        (config.files.archetypes, "archetypes", "archetype"),
        (config.files.deviations, "deviations", "deviation"),
    ]
    for filename, key, label in checks:
        path = data_dir / filename
        if not path.exists():
            continue
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            issues.append(f"Could not read {filename}: {e}")
            continue
        records = data.get(key, []) if isinstance(data, dict) else data
        if not isinstance(records, list):
            continue
        codes = [str(r.get("code", "")).strip().upper() for r in records if isinstance(r, dict)]
        duplicates = sorted(set(c for c in codes if c and codes.count(c) > 1))
        if duplicates:
            issues.append(f"Duplicate {label} codes: {', '.join(duplicates)}")
    return issues


def validate_knowledge_base(
    data_dir: Union[str, Path, None] = None,
    config: Optional[KnowledgeBaseConfig] = None,
) -> tuple[bool, list[str]]:
    """Load and validate a knowledge base directory.

    Returns:
        Tuple of (is_valid, issues).
    """
    config = config or get_config()
    root = Path(data_dir) if data_dir else config.resolve_data_dir()
    if not root.is_dir():
        return False, [f"Knowledge base directory not found: {root}"]

    issues = find_duplicate_codes(root, config)
    kb = KnowledgeBase.from_directory(root, config=config)
    if not kb.archetypes:
        issues.append("No archetypes loaded")
    if not kb.deviations:
        issues.append("No deviations loaded")
    issues.extend(KnowledgeBaseValidator().validate(kb))
    return not issues, issues
