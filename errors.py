# errors.py: failure kinds raised by the domain modules; api.py maps them to HTTP


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    status_code = 404


class Forbidden(DomainError):
    status_code = 403


class InvalidArgument(DomainError):
    status_code = 400


class Conflict(DomainError):
    status_code = 409
