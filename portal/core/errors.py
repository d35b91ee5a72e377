"""앱 공통 예외. 서비스 레이어는 raise만 하고, HTTP 매핑은 main의 exception handler가 담당."""


class AppError(Exception):
    """기본 예외. code는 클라이언트용 식별자, status_code는 HTTP 상태."""

    code = "APP_ERROR"
    status_code = 500

    def __init__(self, message: str = "Application error") -> None:
        super().__init__(message)
        self.message = message


class AlreadyExistsError(AppError):
    code = "ALREADY_EXISTS"
    status_code = 409


class InvalidCredentialsError(AppError):
    """이메일/비밀번호 불일치. 원인(유저 없음/비번 틀림)을 구분하지 않는다."""

    code = "INVALID_CREDENTIALS"
    status_code = 401

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class TokenExpiredError(UnauthorizedError):
    code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class TokenInvalidError(UnauthorizedError):
    code = "TOKEN_INVALID"

    def __init__(self, message: str = "Token invalid") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(AppError):
    """현재 상태에서 허용되지 않는 작업(예: 유일한 로그인 수단 해제)."""

    code = "INVALID_STATE"
    status_code = 400
