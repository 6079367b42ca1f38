class ReadingSourceError(Exception):
    """The reading store could not be queried."""
