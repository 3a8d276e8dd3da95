class PosError(Exception):
    """Base class for failures a handler reports back to the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PosError):
    """The request reached the handler but failed a business rule."""


class NotFound(PosError):
    pass
