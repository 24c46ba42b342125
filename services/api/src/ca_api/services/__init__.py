"""服务层能力导出集合。"""

from ca_api.services.account_auth import recover, signin, signout, signup, suggest_emoji_id
from ca_api.services.sessions import SessionPrincipal, purge_expired_sessions, validate_session

__all__ = [
    "suggest_emoji_id",
    "signup",
    "signin",
    "recover",
    "signout",
    "SessionPrincipal",
    "validate_session",
    "purge_expired_sessions",
]
