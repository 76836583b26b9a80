from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from urllib.parse import quote, unquote
from uuid import UUID

import httpx
from fastapi import Depends, Header, HTTPException, status

from app import settings
from app.crud import BookingCRUD, PaymentCRUD, WorkshopCRUD, booking_crud, workshop_crud
from app.errors import AppError, ErrorKind, auth_error, validation_error
from app.models import PaymentMethod, UserRole
from app.repositories import AuthRepository
from app.result import Result, Success, result_boundary
from app.schemas import GatewayReceipt, User

ADMIN_SCOPE = "admin:scopes"


@dataclass
class CurrentUser:
    id: UUID
    username: str
    scopes: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return ADMIN_SCOPE in self.scopes

    def to_user(self) -> User:
        return User(
            id=str(self.id),
            email=self.username,
            name=self.username,
            role=UserRole.ADMIN if self.is_admin else UserRole.USER,
        )


def get_optional_user(
    x_user_id: str | None = Header(default=None),
    x_username: str | None = Header(default=None),
    x_user_scopes: str = Header(default=""),
) -> CurrentUser | None:
    """
    Reads the headers injected by the gateway after forwardAuth validation.
    The JWT has already been verified, these headers are trusted as-is.
    Anonymous requests (sign-in, sign-up, public availability) yield None;
    use cases decide whether a session is required.
    """
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    scopes = x_user_scopes.split(" ") if x_user_scopes else []
    return CurrentUser(id=user_id, username=unquote(x_username or ""), scopes=scopes)


def _identity_headers(user: CurrentUser | None) -> dict[str, str]:
    if user is None:
        return {}
    return {
        "X-User-Id": str(user.id),
        "X-Username": quote(user.username),
        "X-User-Scopes": " ".join(user.scopes),
    }


async def _send(
    client: httpx.AsyncClient, service: str, method: str, url: str, **kwargs
) -> httpx.Response:
    """Transport errors become NETWORK, 5xx become SERVER; 4xx are left to the caller."""
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.RequestError as exc:
        raise AppError(
            ErrorKind.NETWORK,
            f"{service} is unreachable: {exc}",
            code="network-request-failed",
        ) from exc
    if resp.status_code >= 500:
        raise AppError(ErrorKind.SERVER, f"{service} returned {resp.status_code}")
    return resp


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or str(resp.status_code)
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


# ---------------------------------------------------------------------------
# AuthClient: AuthRepository over the users-ms API
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_users_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.users_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


def _user_from_payload(data: dict) -> User:
    scopes = data.get("scopes") or []
    return User(
        id=str(data["id"]),
        email=data["email"],
        name=data.get("full_name") or data.get("name") or data.get("username") or "",
        role=UserRole.ADMIN if ADMIN_SCOPE in scopes else UserRole.USER,
        phone_number=data.get("phone_number"),
    )


class AuthClient(AuthRepository):
    """
    Session operations are delegated to users-ms.
    The signed-in user of a request comes from the gateway headers.
    """

    def __init__(self, user: CurrentUser | None) -> None:
        self._user = user

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_users_http_client()

    async def get_current_user(self) -> User | None:
        return self._user.to_user() if self._user else None

    @result_boundary("Sign-in failed")
    async def sign_in(self, email: str, password: str) -> Result[User]:
        resp = await _send(
            self._client,
            "users-ms",
            "POST",
            "/auth/token",
            data={"username": email, "password": password},
        )
        match resp.status_code:
            case 404:
                raise auth_error("No account for this email", code="user-not-found")
            case 400 | 401:
                raise auth_error("Incorrect email or password", code="wrong-password")
            case 403:
                raise auth_error("Account is disabled", code="user-disabled")
            case 429:
                raise auth_error("Too many sign-in attempts", code="too-many-requests")
        token = resp.json()["access_token"]

        me = await _send(
            self._client,
            "users-ms",
            "GET",
            "/users/me",
            headers={"Authorization": f"Bearer {token}"},
        )
        if me.status_code >= 400:
            raise auth_error(f"Could not load the signed-in user: {_detail(me)}")
        return Success(_user_from_payload(me.json()))

    @result_boundary("Sign-up failed")
    async def sign_up(self, email: str, password: str, name: str) -> Result[User]:
        resp = await _send(
            self._client,
            "users-ms",
            "POST",
            "/users",
            json={"email": email, "password": password, "full_name": name},
        )
        if resp.status_code == 409:
            raise auth_error("Email is already registered", code="email-already-in-use")
        if resp.status_code == 422:
            raise validation_error(_detail(resp))
        if resp.status_code >= 400:
            raise auth_error(_detail(resp))
        return Success(_user_from_payload(resp.json()))

    @result_boundary("Sign-out failed")
    async def sign_out(self) -> Result[None]:
        resp = await _send(
            self._client,
            "users-ms",
            "POST",
            "/auth/sign-out",
            headers=_identity_headers(self._user),
        )
        if resp.status_code >= 400:
            raise auth_error(_detail(resp))
        return Success(None)

    @result_boundary("Password reset failed")
    async def send_password_reset_email(self, email: str) -> Result[None]:
        resp = await _send(
            self._client,
            "users-ms",
            "POST",
            "/auth/password-reset",
            json={"email": email},
        )
        if resp.status_code == 404:
            raise auth_error("No account for this email", code="user-not-found")
        if resp.status_code >= 400:
            raise auth_error(_detail(resp))
        return Success(None)


# ---------------------------------------------------------------------------
# PaymentsClient: thin async wrapper around the payments-ms gateway API
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_payments_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.payments_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


class PaymentsClient:
    """
    Charges and refunds through payments-ms.
    A declined operation (4xx) comes back as an unsuccessful receipt;
    an unreachable or failing gateway raises a PAYMENT / NETWORK AppError.
    """

    def __init__(self, caller: CurrentUser | None = None) -> None:
        self._caller = caller

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_payments_http_client()

    async def _post(self, url: str, payload: dict) -> GatewayReceipt:
        try:
            resp = await _send(
                self._client,
                "payments-ms",
                "POST",
                url,
                json=payload,
                headers=_identity_headers(self._caller),
            )
        except AppError as exc:
            if exc.kind == ErrorKind.SERVER:
                raise AppError(ErrorKind.PAYMENT, exc.message, code="gateway_error") from exc
            raise
        if resp.status_code >= 400:
            return GatewayReceipt(success=False, failure_reason=_detail(resp))
        return GatewayReceipt.model_validate(resp.json())

    async def charge(
        self, booking_id: str, amount: Decimal, method: PaymentMethod, currency: str
    ) -> GatewayReceipt:
        return await self._post(
            "/payments/charge",
            {
                "booking_id": booking_id,
                "amount": str(amount),
                "method": method.value,
                "currency": currency,
            },
        )

    async def refund(self, transaction_id: str, amount: Decimal, reason: str) -> GatewayReceipt:
        return await self._post(
            "/payments/refund",
            {"transaction_id": transaction_id, "amount": str(amount), "reason": reason},
        )


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------


def get_booking_repository() -> BookingCRUD:
    return booking_crud


def get_workshop_repository() -> WorkshopCRUD:
    return workshop_crud


def get_payment_repository(
    current_user: CurrentUser | None = Depends(get_optional_user),
) -> PaymentCRUD:
    return PaymentCRUD(PaymentsClient(current_user))


def get_auth_repository(
    current_user: CurrentUser | None = Depends(get_optional_user),
) -> AuthClient:
    return AuthClient(current_user)
