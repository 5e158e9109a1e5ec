"""Forgot-password flow built on stateless signed tokens.

A reset token is a JWT over ``{email, id}`` signed with the server secret
concatenated with the user's current password hash. Nothing is stored: the
token verifies until it expires or the password changes, because a new hash
means a new signing key.
"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import InvalidOrExpiredTokenError, NotFoundError, ValidationError
from app.repositories.user import UserRecord, UserRepository
from app.services.mailer import LogMailer, get_mailer
from app.services.passwords import check_new_password, hash_password
from app.services.token_signer import TokenSigner, derive_reset_key, get_token_signer

logger = logging.getLogger("vidjot")


class PasswordResetService:
    def __init__(self, signer: TokenSigner | None = None, mailer: LogMailer | None = None) -> None:
        self.signer = signer or get_token_signer()
        self.mailer = mailer or get_mailer()

    def _key_for(self, user: UserRecord) -> str:
        return derive_reset_key(get_settings().SECRET_KEY, user.password_hash)

    def issue_token(self, user: UserRecord) -> str:
        ttl = timedelta(minutes=get_settings().RESET_TOKEN_EXPIRE_MINUTES)
        return self.signer.sign({"email": user.email, "id": user.id}, self._key_for(user), ttl)

    def request_reset(self, db: Session, email: str, base_url: str | None = None) -> str:
        """Issue a reset link for ``email`` and hand it to the mailer.

        Links point at ``base_url``, or the configured BASE_URL when omitted.

        Returns the link. Raises NotFoundError if no account uses that email.
        """
        user = UserRepository(db).get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unregistered email %s", email)
            raise NotFoundError(f"{email} not registered")

        token = self.issue_token(user)
        base_url = base_url or get_settings().BASE_URL
        link = f"{base_url.rstrip('/')}/user/reset-password/{user.id}/{token}"
        self.mailer.send_reset_link(user.email, link)
        return link

    def verify(self, db: Session, user_id: int, token: str) -> UserRecord:
        """Check a reset token against the user's current key.

        Raises NotFoundError for an unknown user and InvalidOrExpiredTokenError
        for a bad, expired or superseded token.
        """
        user = UserRepository(db).get_by_id(user_id)
        if user is None:
            raise NotFoundError("Invalid ID")

        payload = self.signer.verify(token, self._key_for(user))
        if payload.get("id") != user.id:
            raise InvalidOrExpiredTokenError()
        return user

    def reset_password(
        self, db: Session, user_id: int, token: str, password: str, password_confirmation: str
    ) -> UserRecord:
        """Set a new password. Every earlier token for this user stops verifying."""
        try:
            user = self.verify(db, user_id, token)
        except NotFoundError:
            raise InvalidOrExpiredTokenError() from None

        errors = check_new_password(password, password_confirmation)
        if errors:
            raise ValidationError(errors)

        updated = UserRepository(db).update_password(user.id, hash_password(password))
        logger.info("Password reset for user id=%d", user.id)
        return updated


_password_reset_service: PasswordResetService | None = None


def get_password_reset_service() -> PasswordResetService:
    """Get singleton password reset service instance."""
    global _password_reset_service
    if _password_reset_service is None:
        _password_reset_service = PasswordResetService()
    return _password_reset_service
