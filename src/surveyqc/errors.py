"""
Exceptions raised by the surveyqc package.

Structural errors propagate and abort the computation.
Statistical sparsity is never an error; it is absorbed with
documented defaults where it occurs.
"""


class SurveyQCError(Exception):
    """Base class for all surveyqc errors."""
    pass


class MalformedSurveyError(SurveyQCError):
    """Raised when the survey tree violates a structural invariant."""
    pass


class PathMatchError(MalformedSurveyError):
    """Raised when a response's traversed blocks match no single known path."""
    pass


class ResponseAccessError(SurveyQCError, TypeError):
    """Raised when a question response is read through the wrong accessor."""
    pass


class DuplicateAnswerError(SurveyQCError, ValueError):
    """Raised when a question is answered twice within one interpreter run."""
    pass


class InterpreterStateError(SurveyQCError, RuntimeError):
    """Raised when the interpreter is driven out of order."""
    pass
