class SourceError(Exception):
    """A line source could not be opened or started."""
