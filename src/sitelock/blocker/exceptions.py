"""
SiteLock Exception Classes
"""


class SiteLockError(Exception):
    """Base exception for SiteLock operations"""
    pass


class StorageError(SiteLockError):
    """Raised when the settings store cannot be read or written"""
    pass


class Unauthorized(SiteLockError):
    """Raised when a supplied master password does not match the stored digest"""
    pass


class MutationRejected(SiteLockError):
    """Raised when blocked sites would be removed without a master password"""
    pass


class NoPendingMutation(SiteLockError):
    """Raised when confirming a settings change that was never proposed"""
    pass


class InvalidSettingsPayload(SiteLockError):
    """Raised when an imported settings document is malformed"""
    pass
