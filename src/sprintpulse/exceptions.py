class SprintPulseError(Exception):
    """Base exception for SprintPulse errors."""
    pass

class ConfigError(SprintPulseError):
    """Configuration loading specific errors."""
    pass

class DataSourceError(SprintPulseError):
    """Tracker ingestion specific errors."""
    pass

class TrackerUnavailableError(DataSourceError):
    """Tracker could not be reached or kept failing after retries."""
    pass
