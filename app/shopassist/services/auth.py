"""
Purpose: Sign-in/out against the storefront API.
Login writes the credential and user profile to the durable store; every
TransportClient call made afterwards carries the bearer header.
"""

from __future__ import annotations
from typing import Optional

from ..context import ClientContext
from ..errors import ClientInputError, TransportError
from ..models import User
from ..utils.log import get_logger
from .transport import TransportClient

logger = get_logger(__name__)

LOGIN_PATH = "/api/v1/auth/login"
REGISTER_PATH = "/api/v1/auth/register"
ROLES = ("buyer", "seller")


class AuthClient:
    def __init__(self, transport: TransportClient, context: Optional[ClientContext] = None) -> None:
        self.transport = transport
        self.context = context or transport.context

    async def login(self, email: str, password: str) -> Optional[User]:
        if not email.strip() or not password:
            raise ClientInputError("Email and password are required.")
        data = await self.transport.upload(
            LOGIN_PATH, {}, {"username": email.strip(), "password": password}
        )
        token = (data or {}).get("access_token")
        if not token:
            raise TransportError(200, "login response carried no access_token", endpoint=LOGIN_PATH)
        user = data.get("user")
        self.context.sign_in(token, user if isinstance(user, dict) else None)
        logger.info("Signed in as %s", email.strip())
        return self.context.current_user()

    async def register(
        self, *, email: str, username: str, password: str, full_name: str, role: str = "buyer"
    ) -> dict:
        if role not in ROLES:
            raise ClientInputError(f"Role must be one of {', '.join(ROLES)}.")
        return await self.transport.request(
            REGISTER_PATH,
            "POST",
            {
                "email": email,
                "username": username,
                "password": password,
                "full_name": full_name,
                "role": role,
            },
        )

    def logout(self) -> None:
        self.context.sign_out()

    def current_user(self) -> Optional[User]:
        return self.context.current_user()
