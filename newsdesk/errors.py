class NewsdeskError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500
    status = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ContentStoreError(NewsdeskError):
    """The content store query failed. Never retried."""


class ArticleNotFound(NewsdeskError):
    status_code = 404
    status = "fail"


class ArticleValidationError(NewsdeskError):
    status_code = 400
    status = "fail"
