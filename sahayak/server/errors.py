"""Exceptions raised by the session core.

None of these are fatal: the dispatch layer turns them into system messages
shown to the operator (or sent back to the learner).
"""


class SessionError(Exception):
    """Base class for invalid protocol use."""


class NotConnected(SessionError):
    def __init__(self, message: str = "No learner connected"):
        super().__init__(message)


class NoActiveQuiz(SessionError):
    def __init__(self, message: str = "No active quiz"):
        super().__init__(message)


class DuplicateAnswer(SessionError):
    def __init__(self, message: str = "Answer already recorded for this quiz"):
        super().__init__(message)


class DoubtWindowClosed(SessionError):
    def __init__(self, message: str = "Doubt collection not active. Educator must send /doubt command first."):
        super().__init__(message)


class GenerationBusy(SessionError):
    def __init__(self, message: str = "Still generating, please wait..."):
        super().__init__(message)


class GenerationError(Exception):
    """A text-generation strategy failed (timeout, transport, non-2xx, exit code)."""


class ResponseParseError(Exception):
    """Model output did not contain the expected JSON object."""
