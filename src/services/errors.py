"""Errors raised by the signal pipeline."""


class SignalPipelineError(Exception):
    """Base class for pipeline errors."""


class UpstreamUnavailable(SignalPipelineError):
    """The market data source is unreachable and nothing is cached to fall back on."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source} unavailable: {message}")
        self.source = source


class InsufficientData(SignalPipelineError):
    """An upstream payload lacks the fields needed to build a value object."""

    def __init__(self, asset: str, missing: list[str] | str):
        if isinstance(missing, str):
            missing = [missing]
        super().__init__(f"Insufficient data for {asset}: missing {', '.join(missing)}")
        self.asset = asset
        self.missing = missing


class UnknownVenueError(SignalPipelineError, ValueError):
    """A venue name that is not in the venue registry was requested."""

    def __init__(self, venue: str):
        super().__init__(f"Unknown venue: {venue}")
        self.venue = venue
