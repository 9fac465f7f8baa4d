"""Error kinds surfaced by the game core

Routers let these propagate; the handler registered in app.main maps each
kind to its HTTP status.
"""


class WordleError(Exception):
    """Base class for every error the core raises on purpose"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WordleError):
    """Malformed input, rejected before any state is touched"""
    status_code = 400


class ConflictError(WordleError):
    """Business rule already satisfied (e.g. puzzle already played)"""
    status_code = 409


class NotFoundError(WordleError):
    """Unknown player, puzzle or server"""
    status_code = 404


class CollaboratorUnavailableError(WordleError):
    """Storage, Discord or image backend could not do its part"""
    status_code = 503


class ImageRenderError(CollaboratorUnavailableError):
    pass


class ImageCompositionError(CollaboratorUnavailableError):
    pass
