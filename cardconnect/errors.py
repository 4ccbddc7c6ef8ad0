"""Exception taxonomy shared by the sync, remote and AI layers."""

from __future__ import annotations


class CardConnectError(Exception):
    """Base exception for CardConnect failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotAuthenticated(CardConnectError):
    """Sync attempted without a signed-in user."""

    def __init__(self, message: str = "User is not authenticated. Please sign in to sync cards."):
        super().__init__(message)


class DecodeFailure(CardConnectError):
    """A remote document or AI response body could not be parsed."""

    pass


class TransportFailure(CardConnectError):
    """Network or document-store call failed."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class ModelFailure(CardConnectError):
    """AI service unreachable or returned unusable output."""

    pass
