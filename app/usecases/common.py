from app.errors import auth_error
from app.repositories import AuthRepository
from app.schemas import User


async def require_user(auth: AuthRepository) -> User:
    user = await auth.get_current_user()
    if user is None:
        raise auth_error("Login required", code="unauthenticated")
    return user


async def require_admin(auth: AuthRepository) -> User:
    user = await require_user(auth)
    if not user.is_admin:
        raise auth_error("Admin privileges required", code="forbidden")
    return user


def ensure_owner_or_admin(user: User, owner_id: str, message: str) -> None:
    if user.id != owner_id and not user.is_admin:
        raise auth_error(message, code="forbidden")
