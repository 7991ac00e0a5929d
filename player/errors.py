"""Error types raised by the streaming session engine."""

from __future__ import annotations


class PlayerError(RuntimeError):
    """Base class for player failures."""


class TurnTransportError(PlayerError):
    """The turn stream could not be opened or ended without an end frame."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionStartError(PlayerError):
    """Starting play failed; the controller is left in the error state."""


class TurnFailedError(PlayerError):
    """A reply turn failed and its optimistic user message was rolled back."""


class ImageGenerationError(PlayerError):
    """The image endpoint returned an error or an unusable payload."""


class InvalidTransitionError(PlayerError):
    """An event was dispatched in a state that does not accept it."""


class CatalogError(PlayerError):
    """A game could not be fetched from the catalog."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
