# lambdas/slowlog_check/errors.py


class SlowlogCheckError(Exception):
    """Base class for every failure raised by the slowlog check."""
    pass


class ConfigurationError(SlowlogCheckError, ValueError):
    """Missing settings, or a REDIS_HOST that is not a recognizable ElastiCache endpoint."""
    pass


class ConnectivityError(SlowlogCheckError, ConnectionError):
    """The cache could not be reached (refused, DNS, timeout)."""
    pass


class BackendError(SlowlogCheckError):
    """Datadog answered with something other than an "ok" status."""

    def __init__(self, message: str, response=None):
        super().__init__(message)
        self.response = response


class BackendQueryError(BackendError):
    pass


class BackendSubmitError(BackendError):
    pass
