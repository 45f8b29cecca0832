class CafeError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInput(CafeError):
    status_code = 400


class NotFound(CafeError):
    status_code = 404


class Conflict(CafeError):
    """Raised when a delete would orphan rows that reference the target."""

    status_code = 400
