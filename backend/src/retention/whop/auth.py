"""Verification of the Whop user token sent with iframe requests."""

from jose import JWTError, jwt

from retention.errors import AuthError, WhopNotConfiguredError
from retention.logging_config import get_logger
from retention.settings import Settings

logger = get_logger(__name__)

USER_TOKEN_HEADER = "x-whop-user-token"
TOKEN_ALGORITHM = "ES256"


class WhopTokenVerifier:
    """Verifies Whop-issued user JWTs and extracts the user ID."""

    def __init__(self, public_key: str, app_id: str | None = None, issuer: str | None = None):
        """Initialize verifier.

        Args:
            public_key: Whop's PEM-encoded ES256 public key
            app_id: Expected audience; not checked when None
            issuer: Expected issuer; not checked when None
        """
        self.public_key = public_key
        self.app_id = app_id
        self.issuer = issuer

    def verify(self, token: str | None) -> str:
        """Verify a user token.

        Args:
            token: Raw JWT from the request header

        Returns:
            Whop user ID of the actor

        Raises:
            AuthError: If the token is missing or invalid
        """
        if not token:
            raise AuthError("Missing user token")

        try:
            claims = jwt.decode(
                token,
                self.public_key,
                algorithms=[TOKEN_ALGORITHM],
                audience=self.app_id,
                issuer=self.issuer,
                options={"verify_aud": self.app_id is not None},
            )
        except JWTError as e:
            logger.warning("whop_token_invalid", error=str(e))
            raise AuthError("Invalid user token") from e

        user_id = claims.get("sub")
        if not user_id:
            raise AuthError("Invalid user token")
        return user_id


def build_token_verifier(config: Settings) -> WhopTokenVerifier:
    """Raises WhopNotConfiguredError when no public key is configured."""
    if not config.whop_token_public_key:
        raise WhopNotConfiguredError("Whop token verification not configured")
    return WhopTokenVerifier(
        public_key=config.whop_token_public_key.replace("\\n", "\n"),
        app_id=config.whop_app_id,
        issuer=config.whop_token_issuer,
    )
