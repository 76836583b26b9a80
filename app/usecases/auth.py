from app.errors import auth_error
from app.repositories import AuthRepository
from app.result import Result, result_boundary
from app.schemas import User
from app.validators import validate_email, validate_name, validate_password


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class SignIn:
    def __init__(self, auth: AuthRepository) -> None:
        self._auth = auth

    @result_boundary("Sign-in failed")
    async def execute(self, email: str, password: str) -> Result[User]:
        validate_email(email)
        validate_password(password)
        return await self._auth.sign_in(_normalize_email(email), password)


class SignUp:
    """Stricter password rules than sign-in; email and name are normalized."""

    def __init__(self, auth: AuthRepository) -> None:
        self._auth = auth

    @result_boundary("Sign-up failed")
    async def execute(self, email: str, password: str, name: str) -> Result[User]:
        validate_email(email)
        validate_password(password, strict=True)
        validate_name(name)
        return await self._auth.sign_up(_normalize_email(email), password, name.strip())


class SignOut:
    def __init__(self, auth: AuthRepository) -> None:
        self._auth = auth

    @result_boundary("Sign-out failed")
    async def execute(self) -> Result[None]:
        if await self._auth.get_current_user() is None:
            raise auth_error("No user is signed in", code="unauthenticated")
        return await self._auth.sign_out()


class SendPasswordReset:
    def __init__(self, auth: AuthRepository) -> None:
        self._auth = auth

    @result_boundary("Sending the password reset email failed")
    async def execute(self, email: str) -> Result[None]:
        validate_email(email)
        return await self._auth.send_password_reset_email(_normalize_email(email))
