"""Exceptions raised by the ABM warranty report modules.

Library code raises these; abm_warranty_report.main() turns them into a
logged error and a non-zero exit.
"""


class AbmError(Exception):
    """Base class for every fatal or per-device failure."""


class ConfigError(AbmError):
    pass


class SigningError(AbmError):
    pass


class TokenError(AbmError):
    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DeviceListError(AbmError):
    pass


class CoverageError(AbmError):
    """Coverage lookup for a single device failed. Not fatal to the run."""


class OutputError(AbmError):
    """An output CSV could not be written."""
