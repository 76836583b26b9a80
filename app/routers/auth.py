from fastapi import APIRouter, Depends, status

from app.deps import get_auth_repository
from app.repositories import AuthRepository
from app.result import respond
from app.schemas import PasswordResetRequest, SignInRequest, SignUpRequest, User
from app.usecases.auth import SendPasswordReset, SignIn, SignOut, SignUp

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-in", response_model=User)
async def sign_in(
    payload: SignInRequest,
    auth: AuthRepository = Depends(get_auth_repository),
) -> User:
    return respond(await SignIn(auth).execute(payload.email, payload.password))


@router.post("/sign-up", response_model=User, status_code=status.HTTP_201_CREATED)
async def sign_up(
    payload: SignUpRequest,
    auth: AuthRepository = Depends(get_auth_repository),
) -> User:
    result = await SignUp(auth).execute(payload.email, payload.password, payload.name)
    return respond(result)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(auth: AuthRepository = Depends(get_auth_repository)) -> None:
    respond(await SignOut(auth).execute())


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def send_password_reset(
    payload: PasswordResetRequest,
    auth: AuthRepository = Depends(get_auth_repository),
) -> None:
    respond(await SendPasswordReset(auth).execute(payload.email))
