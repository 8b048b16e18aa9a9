"""
ActionTokenService -- signed, expiring capability links for approvers.

Responsibility:
    Lets an approver approve or decline from an emailed link without a live
    session.  A token is a compact HS256 JWT (``header.claims.signature``)
    with claims ``{"a": action, "pid": pending_id, "u": recipient?,
    "exp": epoch_seconds}``.

Invariants enforced:
    - Verification failures are distinguishable, checked in this order:
      malformed structure, bad signature, missing fields, expired,
      recipient mismatch.
    - Expiry is measured against the injected Clock, not the wall clock,
      so ``exp`` is validated here rather than inside ``jwt.decode``.
    - Personalized tokens (``u`` present) bind to one identity, compared
      case-insensitively.  Group tokens omit ``u``.
    - Tokens are stateless and not single-use.  A replay inside the TTL
      re-enters the ordinary approve/decline path, which rejects a resolved
      request with AlreadyProcessedError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.constants import ALGORITHMS

from procurement_config import TokenSettings
from procurement_kernel.domain.approval import TokenAction
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    MalformedTokenError,
    TokenExpiredError,
    TokenMissingFieldsError,
    TokenRecipientMismatchError,
    TokenSignatureError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.action_token")

ALGORITHM = ALGORITHMS.HS256

_REQUIRED_FIELDS = ("a", "pid", "exp")

# Checked against the service clock below.
_DECODE_OPTIONS = {"verify_exp": False}


@dataclass(frozen=True)
class ActionTokenData:
    action: TokenAction
    pending_id: str
    expires_at: datetime
    recipient: str | None = None

    @property
    def is_personalized(self) -> bool:
        return self.recipient is not None


class ActionTokenService:
    """Issues and verifies action tokens with a server-held HMAC secret."""

    def __init__(self, settings: TokenSettings, clock: Clock | None = None):
        if not settings.secret:
            raise ValueError("Action token secret must not be empty")
        self._secret = settings.secret
        self._default_ttl = timedelta(minutes=settings.ttl_minutes)
        self._clock = clock or SystemClock()

    def issue(
        self,
        action: TokenAction | str,
        pending_id: str,
        recipient: str | None = None,
        ttl: timedelta | None = None,
    ) -> str:
        action = TokenAction(action)
        expires = self._clock.epoch_seconds() + int((ttl or self._default_ttl).total_seconds())
        claims: dict = {"a": action.value, "pid": pending_id}
        if recipient:
            claims["u"] = recipient.strip().lower()
        claims["exp"] = expires

        token = jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        logger.debug(
            "action_token_issued",
            extra={
                "action": action.value,
                "pending_id": pending_id,
                "personalized": recipient is not None,
            },
        )
        return token

    def verify(self, token: str, presented_identity: str | None = None) -> ActionTokenData:
        token = (token or "").strip()
        if token.count(".") != 2 or not all(token.split(".")):
            raise MalformedTokenError("expected <header>.<claims>.<signature>")
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError(str(exc)) from None

        try:
            claims = jwt.decode(
                token, self._secret, algorithms=[ALGORITHM], options=_DECODE_OPTIONS
            )
        except JWTError:
            raise TokenSignatureError() from None

        missing = tuple(f for f in _REQUIRED_FIELDS if claims.get(f) in (None, ""))
        if missing:
            raise TokenMissingFieldsError(missing)
        try:
            action = TokenAction(claims["a"])
            expires = int(claims["exp"])
        except (ValueError, TypeError):
            raise MalformedTokenError("unrecognized action or expiry") from None

        expires_at = datetime.fromtimestamp(expires, tz=timezone.utc)
        if self._clock.epoch_seconds() > expires:
            raise TokenExpiredError(expires_at.isoformat())

        recipient = claims.get("u") or None
        if recipient is not None:
            presented = (presented_identity or "").strip().lower()
            if presented != recipient:
                raise TokenRecipientMismatchError(recipient, presented)

        return ActionTokenData(
            action=action,
            pending_id=str(claims["pid"]),
            expires_at=expires_at,
            recipient=recipient,
        )
