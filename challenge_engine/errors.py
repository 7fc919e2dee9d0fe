# challenge_engine/errors.py


class ChallengeEngineError(Exception):
    """Base class for failures surfaced by the selection engine."""


class DataUnavailable(ChallengeEngineError):
    """A read or write against a data dependency failed.

    Not retried inside the engine. Callers must not treat it as an empty
    history, since that would hand beginner content to an established user.
    """


class NoActiveCandidates(ChallengeEngineError):
    """There is nothing to select, even after the repeat-prevention fallback."""


class InvalidState(ChallengeEngineError):
    """A stored record could not be interpreted (unknown type, bad difficulty, ...)."""
