"""Exception types raised during startup."""


class OnceShareError(Exception):
    """Base class for fatal onceshare errors."""


class FileAccessError(OnceShareError):
    """The file to share cannot be read."""


class TokenGenerationError(OnceShareError):
    """The operating system random source is unavailable."""


class StartupError(OnceShareError):
    """The HTTP listener could not be started."""
