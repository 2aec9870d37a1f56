"""
Re-authentication Verifier

Proof of presence before a financially consequential mutation: the
subject re-enters their password, checked against the stored hash.
"""

from typing import Optional, Union
from uuid import UUID

import bcrypt

from stoneguard.app.services.ownership import parse_identifier
from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.libs.result import Error, Result, Return


class ReauthVerifier:
    """
    Business Rules:
    - Missing confirmation is REAUTH_REQUIRED (client-actionable)
    - Unknown subject and wrong password are the same REAUTH_FAILED
    - Constant-time hash comparison; a dummy hash is checked for unknown subjects
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def verify(
        self, subject_id: Union[str, UUID], password_confirmation: Optional[str]
    ) -> Result[None]:
        if not password_confirmation or not isinstance(password_confirmation, str):
            return Return.err(
                Error("REAUTH_REQUIRED", "Re-authentication required. Please confirm your password.")
            )

        password_hash = None
        user_id = parse_identifier(subject_id)
        if user_id is not None:
            uow = self.uow_factory()
            async with uow:
                user = await uow.users.get_by_id(user_id)
                if user is not None:
                    password_hash = user.password_hash

        if password_hash is None:
            bcrypt.checkpw(b"dummy_password", bcrypt.hashpw(b"dummy", bcrypt.gensalt(4)))
            return Return.err(Error("REAUTH_FAILED", "Re-authentication failed"))

        password_valid = bcrypt.checkpw(
            password_confirmation.encode(), password_hash.encode()
        )
        if not password_valid:
            return Return.err(Error("REAUTH_FAILED", "Re-authentication failed"))
        return Return.ok(None)
