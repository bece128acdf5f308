"""
Error taxonomy for Psych Engine

Every failure the engine reports derives from PsychEngineError so a
transport layer can map the whole family with a single handler.
"""


class PsychEngineError(Exception):
    """Base class for all engine errors"""


class ValidationError(PsychEngineError, ValueError):
    """Out-of-range field, empty trial list or missing required field"""


class ConflictError(PsychEngineError):
    """A session with the requested id already exists"""


class NotFoundError(PsychEngineError):
    """Unknown session"""


class InvalidStateError(PsychEngineError):
    """Operation not legal in the session's current lifecycle state"""


class StorageError(PsychEngineError):
    """Opaque failure reported by the storage collaborator"""


class OperationCancelled(PsychEngineError):
    """A long scan was cancelled or ran past its deadline"""
