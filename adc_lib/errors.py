"""Custom exceptions for the ADC monitor library."""

from typing import Optional


class AdcError(Exception):
    """Base exception for all ADC library errors."""

    pass


class BusError(AdcError):
    """Raised when an I2C transaction fails (bus unavailable, NACK, short read).

    The sampling loop treats this as "no sample this cycle".
    """

    def __init__(
        self,
        message: str,
        address: Optional[int] = None,
        register: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.address = address
        self.register = register

    def __str__(self) -> str:
        parts = [self.message]
        if self.address is not None:
            parts.append(f"address=0x{self.address:02x}")
        if self.register is not None:
            parts.append(f"register=0x{self.register:02x}")
        return " | ".join(parts)


class InvalidConfigValue(AdcError):
    """Raised when a configuration word is built from an inconsistent option set."""

    pass


class InvalidResponse(AdcError):
    """Raised when the device returns data that cannot be decoded."""

    pass


class ConfigurationError(AdcError):
    """Raised when required process configuration (env vars) is missing."""

    pass


class AlertDeliveryError(AdcError):
    """Raised when the push notification service cannot be reached or rejects a message."""

    pass
