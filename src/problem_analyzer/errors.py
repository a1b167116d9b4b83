"""Exceptions raised by the problem analyzer."""


class AnalyzerError(Exception):
    """Base error for the problem analyzer."""


class InvalidProblemTextError(AnalyzerError, TypeError):
    """Raised when problem text is neither a string nor None."""

    def __init__(self, value: object):
        self.value_type = type(value).__name__
        super().__init__(f"Problem text must be a string, got {self.value_type}")
