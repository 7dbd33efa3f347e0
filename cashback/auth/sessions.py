"""Refresh-token sessions kept in the ephemeral store.

One session per user: session:{user_id} holds the jti of the only
refresh token that may currently be exchanged.
"""

import uuid

from cashback.auth.exceptions import InvalidTokenError
from cashback.auth.tokens import TokenIssuer, TokenPair
from cashback.ephemeral.store import EphemeralStore, session_key


class SessionRegistry:
    def __init__(self, store: EphemeralStore, tokens: TokenIssuer):
        self._store = store
        self._tokens = tokens

    async def start(self, user_id: uuid.UUID, email: str, role: str) -> TokenPair:
        """Issue a token pair and record its refresh jti."""
        pair = self._tokens.issue_pair(user_id, email, role)
        await self._store.put(
            session_key(user_id), pair.refresh_jti, pair.refresh_expires_in
        )
        return pair

    async def rotate(self, refresh_token: str) -> uuid.UUID:
        """Consume a refresh token and return its user id.

        The recorded jti is removed atomically, so a refresh token can be
        exchanged once. The caller starts a new session afterwards.

        Raises:
            InvalidTokenError: If the token is invalid or no longer current
        """
        claims = self._tokens.verify(refresh_token, expected_type="refresh")
        consumed = await self._store.consume_if_equals(
            session_key(claims.user_id), claims.jti
        )
        if not consumed:
            raise InvalidTokenError("Session has expired, please login again")
        return claims.user_id

    async def end(self, user_id: uuid.UUID) -> None:
        await self._store.delete(session_key(user_id))
