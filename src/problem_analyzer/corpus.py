"""Deviation statistics over a corpus of worked problems."""

from dataclasses import dataclass, field
from typing import Iterable

from .schema import Problem
from .similarity import ProblemLike, extract_features, iter_problems

MAX_COOCCURRENCES = 20


@dataclass
class DeviationGroup:
    """Problems sharing exactly the same set of deviations."""
    deviation_codes: list[str]
    problems: list[Problem] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.problems)


@dataclass
class GroupingResult:
    """Corpus grouped by deviation pattern."""
    groups: list[DeviationGroup]
    ungrouped: list[Problem]

    @property
    def total_problems(self) -> int:
        return sum(g.count for g in self.groups) + len(self.ungrouped)

    @property
    def largest_group(self) -> int:
        return self.groups[0].count if self.groups else 0


@dataclass
class DeviationCount:
    """How often a deviation (or pair of deviations) appears."""
    deviations: list[str]
    count: int
    percentage: float


@dataclass
class DeviationStatistics:
    """Deviation frequencies and co-occurrences across a corpus."""
    total_problems: int
    frequency: list[DeviationCount]
    top_cooccurrences: list[DeviationCount]
    average_per_problem: float

    @property
    def unique_deviations(self) -> int:
        return len(self.frequency)


def group_by_deviation_pattern(problems: Iterable[ProblemLike]) -> GroupingResult:
    """Group problems by their sorted set of deviation codes, largest group first."""
    groups: dict[str, DeviationGroup] = {}
    ungrouped = []
    for problem in iter_problems(problems):
        codes = sorted(extract_features(problem).deviations)
        if not codes:
            ungrouped.append(problem)
            continue
        key = "|".join(codes)
        if key not in groups:
            groups[key] = DeviationGroup(deviation_codes=codes)
        groups[key].problems.append(problem)

    ordered = sorted(groups.values(), key=lambda g: g.count, reverse=True)
    return GroupingResult(groups=ordered, ungrouped=ungrouped)


def find_by_deviation_pattern(
    problems: Iterable[ProblemLike],
    deviations: Iterable[str],
    exact: bool = False,
) -> list[Problem]:
    """Problems containing all the given deviations (exactly those when exact)."""
    target = {str(d).strip().upper() for d in deviations}
    matches = []
    for problem in iter_problems(problems):
        codes = set(extract_features(problem).deviations)
        if exact and codes != target:
            continue
        if target <= codes:
            matches.append(problem)
    return matches


def deviation_statistics(problems: Iterable[ProblemLike]) -> DeviationStatistics:
    """Frequency of each deviation, top co-occurring pairs and average per problem."""
    problems = list(iter_problems(problems))
    total = len(problems)
    frequency: dict[str, int] = {}
    cooccurrence: dict[tuple[str, str], int] = {}
    deviation_total = 0

    for problem in problems:
        codes = extract_features(problem).deviations
        deviation_total += len(codes)
        for code in codes:
            frequency[code] = frequency.get(code, 0) + 1
        for i in range(len(codes)):
            for j in range(i + 1, len(codes)):
                pair = tuple(sorted((codes[i], codes[j])))
                cooccurrence[pair] = cooccurrence.get(pair, 0) + 1

    def percentage(count: int) -> float:
        return round(100.0 * count / total, 2) if total else 0.0

    ranked_frequency = sorted(frequency.items(), key=lambda item: item[1], reverse=True)
    ranked_pairs = sorted(cooccurrence.items(), key=lambda item: item[1], reverse=True)

    return DeviationStatistics(
        total_problems=total,
        frequency=[DeviationCount([code], count, percentage(count)) for code, count in ranked_frequency],
        top_cooccurrences=[
            DeviationCount(list(pair), count, percentage(count))
            for pair, count in ranked_pairs[:MAX_COOCCURRENCES]
        ],
        average_per_problem=round(deviation_total / total, 2) if total else 0.0,
    )
