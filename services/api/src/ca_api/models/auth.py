"""认证相关模型。

系统内不保存任何个人身份信息：账号与身份的唯一联系是
公开的 Emoji ID 与私密 iCal 地址的哈希。
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from ca_api.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class Account(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """账号实体，恢复码与会话的唯一归属方。"""

    __tablename__ = "accounts"

    # 公开展示的 4 符号 Emoji ID，全局唯一，创建后不可修改。
    emoji_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    # iCal 地址 PBKDF2 摘要（含算法与迭代次数），轮换时与盐一并整体替换。
    credential_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    # 随机盐（hex）。
    credential_salt: Mapped[str] = mapped_column(String(128), nullable=False)


class RecoveryCode(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """一次性恢复码，仅存哈希。"""

    __tablename__ = "recovery_codes"

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hash: Mapped[str] = mapped_column(String(128), nullable=False)
    salt: Mapped[str] = mapped_column(String(128), nullable=False)
    # 一旦置为 true 永不回退。
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class AuthSession(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """登录会话，只保存令牌的单向摘要。"""

    __tablename__ = "sessions"

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # 明文令牌的 SHA-256 摘要（hex）。
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
