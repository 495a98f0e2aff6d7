"""Exception types raised by the reconciliation stages."""


class DeviceRenameError(Exception):
    """Base class for all agent errors."""


class InitializationError(DeviceRenameError):
    """Transcript, tag file, or config could not be set up."""


class DirectoryQueryError(DeviceRenameError):
    """Directory-membership state could not be determined."""


class DirectoryUnreachableError(DeviceRenameError):
    """The device is domain-joined but the domain cannot be reached."""


class SchedulerError(DeviceRenameError):
    """The recurring reconciliation task could not be queried or registered."""
