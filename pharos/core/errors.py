class LedgerError(Exception):
    """Base de los errores de dominio; el handler de la app los pasa a HTTP."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class InvalidStateError(LedgerError):
    status_code = 409
