"""
Authentication dependencies and the wired-up lending system
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..audit import AuditTrail
from ..config import LendingConfig, get_config
from ..groups import GroupManager
from ..loans import LoanManager
from ..notifications import NotificationChannel, NotificationDispatcher, WebhookChannelProvider
from ..storage import StorageInterface, create_storage


security = HTTPBearer(auto_error=False)


class LendingSystem:
    """Loan engine with all components initialized"""

    def __init__(
        self,
        config: Optional[LendingConfig] = None,
        storage: Optional[StorageInterface] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)

        self.audit_trail = AuditTrail(self.storage)
        self.group_manager = GroupManager(self.storage, self.audit_trail)
        self.notifier = NotificationDispatcher(self.storage, self.audit_trail, clock=clock)
        if self.config.notification_webhook_url:
            self.notifier.register_provider(
                NotificationChannel.WEBHOOK,
                WebhookChannelProvider(self.config.notification_webhook_url,
                                       timeout=self.config.notification_timeout)
            )
        self.loan_manager = LoanManager(
            self.storage, self.group_manager, self.audit_trail,
            notifier=self.notifier, config=self.config, clock=clock
        )


# Global lending system instance, built on first use
_lending_system: Optional[LendingSystem] = None


def get_lending_system() -> LendingSystem:
    global _lending_system
    if _lending_system is None:
        _lending_system = LendingSystem()
    return _lending_system


def create_access_token(user_id: str, config: LendingConfig, expires_minutes: int = 60) -> str:
    """Issue a bearer token whose ``sub`` claim is the user id"""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_user_id: Optional[str] = Header(None),
    system: LendingSystem = Depends(get_lending_system)
) -> str:
    """Dependency that validates the JWT and returns the acting user id"""
    if not system.config.auth_enabled:
        # Trusted deployments pass the identity through a header
        if not x_user_id:
            raise HTTPException(status_code=401, detail="X-User-Id header required")
        return x_user_id

    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, system.config.jwt_secret,
                             algorithms=[system.config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id
