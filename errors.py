class AppError(ValueError):
    status_code = 400


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Recurso não encontrado") -> None:
        super().__init__(message)


class AuthError(AppError):
    status_code = 401

    def __init__(self, message: str = "Não autorizado") -> None:
        super().__init__(message)


def status_for(exc: ValueError) -> int:
    return getattr(exc, "status_code", 400)
