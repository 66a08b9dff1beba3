from __future__ import annotations

import logging

from werkzeug.security import check_password_hash, generate_password_hash

from filevault.catalog import Catalog
from filevault.core.exceptions import InvalidInput, Unauthorized
from filevault.models import Account

logger = logging.getLogger("filevault.auth")

_BAD_CREDENTIALS = "Invalid email or password"


def normalize_identity(identity: str | None) -> str:
    return (identity or "").strip().lower()


class AuthGateway:
    """Registers and verifies accounts; secrets only ever exist as hashes."""

    def __init__(self, catalog: Catalog, method: str = "scrypt") -> None:
        self.catalog = catalog
        self.method = method
        # Checked for unknown identities so a miss costs as much as a bad password.
        self._dummy_hash = generate_password_hash("filevault-dummy", method=method)

    def register(self, identity: str, secret: str) -> Account:
        identity = normalize_identity(identity)
        if not identity or not secret:
            raise InvalidInput("Email and password are required")
        account = self.catalog.add_account(identity, generate_password_hash(secret, method=self.method))
        logger.info("event=account_registered account_id=%s", account.id)
        return account

    def verify(self, identity: str, secret: str) -> Account:
        account = self.catalog.get_account_by_identity(normalize_identity(identity))
        password_hash = account.password_hash if account else self._dummy_hash
        if not check_password_hash(password_hash, secret or "") or account is None:
            logger.info("event=login_failed")
            raise Unauthorized(_BAD_CREDENTIALS)
        logger.info("event=login_success account_id=%s", account.id)
        return account
