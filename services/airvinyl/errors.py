"""Exception taxonomy shared by the AirVinyl components."""


class AirVinylError(Exception):
    """Base class for every error raised by the service."""


class UnknownDevice(AirVinylError, LookupError):
    """A device id is not (or no longer) in the registry."""

    def __init__(self, device_id: str):
        super().__init__(f"Unknown device: {device_id}")
        self.device_id = device_id


class DiscoveryError(AirVinylError):
    """The platform device browser could not be started or went away."""


class MalformedRecord(AirVinylError, ValueError):
    """A line of browser output does not follow the expected format."""

    def __init__(self, line: str, reason: str = "unrecognised record"):
        super().__init__(f"{reason}: {line!r}")
        self.line = line


class ResolveError(AirVinylError):
    """A discovered service name could not be resolved to an address."""


class CaptureError(AirVinylError):
    """The audio capture source failed to start or to deliver audio."""


class TransportError(AirVinylError):
    """A transport client operation (connect, volume, send, teardown) failed."""


class SessionError(AirVinylError):
    """A session update could not be applied."""
