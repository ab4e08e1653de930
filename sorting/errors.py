class SorterError(Exception):
    """Base error for the project."""

class ConfigError(SorterError):
    pass

class ScanError(SorterError):
    pass

class DirectoryError(SorterError):
    pass

class PolicyError(SorterError):
    """A source or destination path exists but is not a regular file."""

class CopyError(SorterError):
    pass

class MoveError(SorterError):
    pass
