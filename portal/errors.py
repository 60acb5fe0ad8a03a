class PortalError(Exception):

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(PortalError):

    status_code = 400


class NotAuthenticated(PortalError):

    status_code = 401

    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(detail)


class NotAuthorized(PortalError):

    status_code = 403

    def __init__(self, detail: str = "Not authorized") -> None:
        super().__init__(detail)


class NotFound(PortalError):

    status_code = 404


class Conflict(PortalError):

    status_code = 409
