class MilestrackError(Exception):
    """Base exception for all milestrack errors."""
    pass

class RecoverableError(MilestrackError):
    """An error the caller degrades around, usually by serving fallback data."""
    pass

class FatalError(MilestrackError):
    """An error that requires intervention; retrying will not help."""
    pass

class CorruptionError(FatalError):
    """Corrupted Data Error - from syntax errors in data formats, to just unknown data"""
    pass

class ConfigError(FatalError):
    """Configuration file is unreadable or holds invalid values."""
    pass

class FetchError(RecoverableError):
    """Remote request failed or answered with a non-success status."""
    pass

class FileOperationError(RecoverableError):
    """File operation failed but can be retried."""
    pass
