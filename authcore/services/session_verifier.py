"""
Session Verifier - resolves a session proof to a stable identity.

The proof is the session token the client got at sign-in (cookie or
bearer header; extracting it is the HTTP layer's job). Verification is:

1. signature, expiry and token type (python-jose)
2. "sub" and "sid" claims present and well-formed
3. the auth_sessions row for "sid" exists, belongs to "sub", and has not expired

Any failure is Unauthenticated with the same public message, so callers
can't tell a forged token from a signed-out one. Nothing is written:
resolving the same proof any number of times, concurrently, is safe.

A request may carry several proofs (a stale cookie next to a valid header);
resolve_any takes the first one that verifies.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from jose import JWTError
from sqlalchemy.orm import Session

from authcore.core.errors import Unauthenticated
from authcore.core.security import decode_session_token
from authcore.models.auth_session import AuthSession


logger = logging.getLogger("authcore.services.session_verifier")


class SessionVerifier:
    """
    Stateless verifier over the session store.

    Example:
        user_id = SessionVerifier(db).resolve(token)
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, proof: Optional[str], now: Optional[datetime] = None) -> uuid.UUID:
        """
        Resolve a session proof to the identity it was issued for.

        Raises:
            Unauthenticated: If the proof is missing, forged, expired or signed out
        """
        if not proof:
            raise Unauthenticated()

        try:
            user_id, session_id = decode_session_token(proof)
        except JWTError:
            logger.debug("Rejected session token: invalid signature, type or expiry")
            raise Unauthenticated()

        session_row = self.db.get(AuthSession, session_id)

        if session_row is None:
            logger.debug(f"Rejected session {session_id}: no such session")
            raise Unauthenticated()

        if session_row.user_id != user_id:
            logger.warning(f"Session {session_id} presented for a different user")
            raise Unauthenticated()

        if session_row.is_expired(now or datetime.now(timezone.utc)):
            logger.debug(f"Rejected session {session_id}: expired")
            raise Unauthenticated()

        return user_id

    def resolve_any(
        self,
        proofs: Sequence[Optional[str]],
        now: Optional[datetime] = None,
    ) -> tuple[uuid.UUID, str]:
        """
        Resolve the first proof that verifies, in the order given.

        Returns:
            (user id, the proof that verified)

        Raises:
            Unauthenticated: If no proof verifies
        """
        for proof in proofs:
            try:
                return self.resolve(proof, now), proof
            except Unauthenticated:
                continue

        raise Unauthenticated()
