"""Exception types shared across the passport tracker."""


class PassportTrackerError(Exception):
    """Base class for all tracker errors."""


class StatusSourceError(PassportTrackerError):
    """The status source could not answer (network, timeout, bad response)."""


class CityNotFoundError(StatusSourceError):
    """The status source does not know the requested city."""

    def __init__(self, city_name: str):
        super().__init__(f"City not found: {city_name!r}")
        self.city_name = city_name


class TransportError(PassportTrackerError):
    """The chat transport rejected or failed a request."""


class StartupError(PassportTrackerError):
    """A dependency required at startup is unreachable."""
