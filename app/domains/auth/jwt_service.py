import jwt
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from app.config.setting import settings

logger = logging.getLogger(__name__)


class JWTService:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.access_token_expire_minutes = expire_minutes or settings.access_token_expire_minutes

    def create_access_token(self, user_id: str) -> str:
        """Create a new JWT access token for a user."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)

        to_encode = {
            "sub": user_id,
            "exp": expire
        }

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[str]:
        """Verify a JWT token and return the user id if valid."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected invalid token: {e}")
            return None

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            return None
        return user_id
