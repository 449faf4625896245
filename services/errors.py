"""Exception types raised by the repair services."""
from __future__ import annotations


class GamingRepairError(RuntimeError):
    pass


class ElevationError(GamingRepairError):
    pass


class WingetError(GamingRepairError):
    pass


class WingetUnavailableError(WingetError):
    pass


class PackageQueryError(GamingRepairError):
    pass


class RegistrationError(GamingRepairError):
    pass


class ServiceControlError(GamingRepairError):
    pass
