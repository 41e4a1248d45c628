"""Exception types for codepedagogy.

Expected failures (a learner's program erroring, output not matching) are
returned as data. These exceptions are only for bad content or misuse.
"""


class CodePedagogyError(Exception):
    """Base class for all package errors."""


class ContentError(CodePedagogyError):
    """Stage content could not be loaded or is inconsistent."""


class InterpreterError(CodePedagogyError):
    """The interpreter collaborator could not be started or reached."""
