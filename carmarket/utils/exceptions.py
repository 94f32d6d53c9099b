"""Custom exceptions for the car market"""

from typing import Optional


class CarMarketError(Exception):
    """Base exception for the car market.

    ``status_code`` is the HTTP status the web layer answers with.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        super().__init__(message)


class ValidationError(CarMarketError):
    """Malformed or out-of-range input"""
    status_code = 400


class AuthenticationError(CarMarketError):
    """Missing, invalid, expired or revoked credentials"""
    status_code = 401


class ForbiddenError(CarMarketError):
    """Authenticated but not allowed"""
    status_code = 403


class NotFoundError(CarMarketError):
    """Referenced entity does not exist"""
    status_code = 404


class ConflictError(CarMarketError):
    """Duplicate username, orphaned seller, last admin"""
    status_code = 409


class StorageError(CarMarketError):
    """Record store I/O failure"""
    status_code = 500


class LockTimeoutError(StorageError):
    """Write region could not be entered in time"""
    pass


class ConfigError(CarMarketError):
    """Configuration error"""
    pass
