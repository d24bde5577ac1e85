"""Exception types raised inside USB Sentinel."""


class USBSentinelError(RuntimeError):
    """Base class for USB Sentinel errors."""


class ProviderError(USBSentinelError):
    """A device source could not enumerate devices.

    Raised inside providers and converted to an empty scan result at the
    ``scan_safely()`` boundary; it never reaches the poll loop.
    """

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class MonitorStateError(USBSentinelError):
    """The monitor was asked to do something its current state forbids."""


__all__ = ["USBSentinelError", "ProviderError", "MonitorStateError"]
