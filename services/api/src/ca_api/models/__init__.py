"""ORM 模型导出集合。"""

from ca_api.models.auth import Account, AuthSession, RecoveryCode

__all__ = [
    "Account",
    "AuthSession",
    "RecoveryCode",
]
