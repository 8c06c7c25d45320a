"""Exception family for the APOD fetcher.

Every stage of the pipeline raises one of these; only ``apod.main`` turns them
into an exit code.
"""

from __future__ import annotations


class ApodError(Exception):
    """Base exception for APOD fetch errors"""
    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.message = message
        self.url = url

    def __str__(self) -> str:
        return f"{self.message} ({self.url})" if self.url else self.message


class ConfigParseError(ApodError):
    """Exception for an unreadable or malformed config file"""
    pass


class NetworkError(ApodError):
    """Exception for transport failures and non-2xx responses"""
    def __init__(self, message: str, url: str = "", status_code: int | None = None):
        super().__init__(message, url)
        self.status_code = status_code


class ParseError(ApodError):
    """Exception for malformed or incomplete metadata"""
    pass


class StorageError(ApodError):
    """Exception for failures creating the image directory or writing the image"""
    pass
