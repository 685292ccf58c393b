"""Single active session per account.

Each account row holds at most one `active_session_id`. Login swaps in a fresh
id and, if there was one before, pushes `force_logout` to the old session's
room so an open tab can drop out right away. The push is best-effort; what
actually enforces the rule is `validate()`, which rejects any credential whose
embedded session id is no longer the account's current one.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from shiptrack.auth.credentials import CredentialCodec
from shiptrack.auth.passwords import verify_password
from shiptrack.errors import SESSION_TERMINATED_MSG, InvalidCredential, InvalidCredentials, SessionMismatch
from shiptrack.models import Account
from shiptrack.realtime.publisher import EventPublisher


logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    def get_account(self, account_id: int) -> Account: ...

    def find_account_by_email(self, email: str) -> Optional[Account]: ...

    def swap_active_session_id(self, account_id: int, session_id: Optional[str]) -> Optional[str]: ...


@dataclass(frozen=True)
class LoginResult:
    token: str
    account: Account
    session_id: str
    evicted_session_id: Optional[str] = None


class SessionAuthority:
    def __init__(self, store: AccountStore, publisher: EventPublisher, codec: CredentialCodec) -> None:
        self._store = store
        self._publisher = publisher
        self._codec = codec

    def authenticate(self, email: str, password: str) -> Account:
        """Check email and password; blocking (bcrypt), so callers on the loop offload it."""
        account = self._store.find_account_by_email(email)
        if account is None or not verify_password(password, account.password_hash):
            logger.info("login rejected email=%s", email)
            raise InvalidCredentials()
        return account

    def login(self, email: str, password: str) -> LoginResult:
        return self.start_session(self.authenticate(email, password))

    def start_session(self, account: Account) -> LoginResult:
        new_session_id = uuid.uuid4().hex
        old_session_id = self._store.swap_active_session_id(account.id, new_session_id)
        if old_session_id:
            self._evict(old_session_id)
        token = self._codec.issue(account_id=account.id, role=account.role, session_id=new_session_id)
        logger.info(
            "session started account_id=%s session_id=%s evicted=%s",
            account.id,
            new_session_id,
            old_session_id,
        )
        account = account.model_copy(update={"active_session_id": new_session_id})
        return LoginResult(token=token, account=account, session_id=new_session_id, evicted_session_id=old_session_id)

    def logout(self, account_id: int) -> None:
        old_session_id = self._store.swap_active_session_id(account_id, None)
        logger.info("session ended account_id=%s session_id=%s", account_id, old_session_id)

    def revoke(self, account_id: int, msg: str = SESSION_TERMINATED_MSG) -> Optional[str]:
        """End the account's session from the server side and tell its open tabs."""
        try:
            old_session_id = self._store.swap_active_session_id(account_id, None)
        except KeyError:
            return None
        if old_session_id:
            self._evict(old_session_id, msg)
        logger.info("session revoked account_id=%s session_id=%s", account_id, old_session_id)
        return old_session_id

    def validate(self, token: str) -> Account:
        claims = self._codec.decode(token)
        try:
            account = self._store.get_account(claims.account_id)
        except KeyError as e:
            raise InvalidCredential("Not authorized, user not found") from e
        if account.active_session_id is None or account.active_session_id != claims.session_id:
            logger.info(
                "session mismatch account_id=%s presented=%s active=%s",
                account.id,
                claims.session_id,
                account.active_session_id,
            )
            raise SessionMismatch()
        return account

    def _evict(self, session_id: str, msg: str = SESSION_TERMINATED_MSG) -> None:
        try:
            self._publisher.force_logout(session_id, msg)
        except Exception:
            # The passive check still rejects the old credential.
            logger.exception("force_logout push failed session_id=%s", session_id)
