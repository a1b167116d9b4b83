"""Corporate-finance exam problem analyzer."""

from .engine import ProblemAnalysisEngine, analyze_problem
from .errors import AnalyzerError, InvalidProblemTextError

__all__ = [
    "AnalyzerError",
    "InvalidProblemTextError",
    "ProblemAnalysisEngine",
    "analyze_problem",
]
