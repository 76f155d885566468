"""
IdentityService - Local identity provider.

Authenticates users against the `accounts` collection and issues JWT bearer
tokens. Other components learn about sessions through `on_auth_change`
listeners; the API wires one that makes sure every signed-in user has a
profile.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ourhaus.core.auth import create_access_token
from ourhaus.core.security import hash_password, verify_password
from ourhaus.db.store import DocumentStore
from ourhaus.models.base import new_id
from ourhaus.models.user import Account
from ourhaus.repositories.user_repo import AccountRepository
from ourhaus.utils.membership_validation import (
    DuplicateDocumentError,
    InvalidCredentialsError,
    NotFoundError,
    normalize_email,
)

logger = logging.getLogger(__name__)

SIGNED_IN = "signed_in"
SIGNED_OUT = "signed_out"


@dataclass
class AuthSession:
    user_id: str
    email: str
    access_token: str
    display_name: Optional[str] = None
    token_type: str = "bearer"


@dataclass
class AuthChange:
    event: str
    user_id: str
    email: str
    display_name: Optional[str] = None


AuthListener = Callable[[AuthChange], Awaitable[None]]


class IdentityService:
    def __init__(self, store: DocumentStore):
        self.accounts = AccountRepository(store)
        self.clock = store.now
        self._listeners: List[AuthListener] = []

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """
        Register an async listener for sign-in and sign-out.

        Returns a function that removes the listener.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _notify(self, change: AuthChange) -> None:
        for listener in list(self._listeners):
            await listener(change)

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession:
        """Create an account and sign it in."""
        email = normalize_email(email)
        now = self.clock()
        account = Account(
            id=new_id(),
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
            is_active=True,
            token_version=0,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.accounts.create_account(account)
        except DuplicateDocumentError as e:
            raise DuplicateDocumentError("Email already registered") from e

        logger.info("Account %s signed up", account.id)
        return await self._start_session(account)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        account = await self.accounts.get_account_by_email((email or "").strip().lower())
        if account is None or not verify_password(password, account.password_hash):
            raise InvalidCredentialsError("Incorrect email or password")
        logger.info("Account %s signed in", account.id)
        return await self._start_session(account)

    async def sign_out(self, user_id: str) -> None:
        """End every session of the user by invalidating issued tokens."""
        account = await self.accounts.get_account_by_id(user_id)
        if account is None:
            raise NotFoundError("Account not found")
        if not await self.accounts.bump_token_version(account.id, account.token_version):
            # Another sign-out already moved the version on
            logger.debug("Token version for %s changed concurrently", user_id)

        logger.info("Account %s signed out", user_id)
        await self._notify(AuthChange(SIGNED_OUT, account.id, account.email, account.display_name))

    async def _start_session(self, account: Account) -> AuthSession:
        session = AuthSession(
            user_id=account.id,
            email=account.email,
            display_name=account.display_name,
            access_token=create_access_token(account.id, account.email, account.token_version),
        )
        await self._notify(AuthChange(SIGNED_IN, account.id, account.email, account.display_name))
        return session
