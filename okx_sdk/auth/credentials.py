"""API credentials value object."""

from dataclasses import dataclass, field


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"


@dataclass(frozen=True)
class Credentials:
    """Immutable API credentials.

    The secret and passphrase are excluded from ``repr`` so the object can
    appear in log events and tracebacks without leaking them.
    """
    api_key: str
    api_secret: str = field(repr=False)
    passphrase: str = field(repr=False)
    is_simulated: bool = False

    @property
    def simulated_flag(self) -> str:
        """Header value for x-simulated-trading."""
        return "1" if self.is_simulated else "0"

    def __repr__(self) -> str:
        return (
            f"Credentials(api_key={_mask(self.api_key)!r}, "
            f"is_simulated={self.is_simulated})"
        )

    __str__ = __repr__
