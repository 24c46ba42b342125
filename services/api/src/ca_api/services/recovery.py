"""恢复码服务。

注册时一次性生成固定数量的恢复码：明文只返回给用户展示一次，数据库只存
(hash, salt)。消费采用“查找匹配 + 条件更新”的比较交换：只有
`UPDATE ... WHERE id = :id AND used = false` 实际改动一行时才算成功，
同一恢复码被并发提交时只会有一个请求成功。
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import false, func, select, update
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.models.auth import RecoveryCode
from ca_api.services.credentials import HashedCredential, burn_hash_time, hash_secret, verify_secret


@dataclass
class RecoveryCodeBatch:
    """一批恢复码：明文与哈希按下标一一对应，二者不可一起持久化。"""

    plain: list[str] = field(default_factory=list)
    hashed: list[HashedCredential] = field(default_factory=list)


def normalize_recovery_code(code: str) -> str:
    """去除首尾空白并统一小写，兼容用户手动输入。"""
    return code.strip().lower()


def generate_recovery_codes() -> RecoveryCodeBatch:
    """生成 N 个相互独立的恢复码。"""
    settings = get_settings()
    batch = RecoveryCodeBatch()
    while len(batch.plain) < settings.recovery_code_count:
        plain = secrets.token_hex(settings.recovery_code_bytes)
        if plain in batch.plain:
            continue
        batch.plain.append(plain)
        batch.hashed.append(hash_secret(plain))
    return batch


def store_recovery_codes(db: Session, account_id: UUID, hashed_codes: list[HashedCredential]) -> None:
    """在调用方事务内批量写入，与账号创建同提交或同回滚。"""
    db.add_all(
        [
            RecoveryCode(account_id=account_id, hash=code.hash, salt=code.salt, used=False)
            for code in hashed_codes
        ]
    )
    db.flush()


def consume_recovery_code(
    db: Session,
    account_id: UUID,
    candidate: str,
    *,
    now: datetime | None = None,
) -> bool:
    """消费一个未使用的匹配恢复码，成功返回 True，由调用方提交事务。"""
    candidate = normalize_recovery_code(candidate)
    rows = db.execute(
        select(RecoveryCode.id, RecoveryCode.hash, RecoveryCode.salt)
        .where(RecoveryCode.account_id == account_id)
        .where(RecoveryCode.used == false())
    ).all()

    matched_id: UUID | None = None
    # 对每一行都完成派生，耗时不随匹配位置变化。
    for row in rows:
        if verify_secret(candidate, HashedCredential(hash=row.hash, salt=row.salt)) and matched_id is None:
            matched_id = row.id
    # 补足到固定派生次数，耗时不暴露剩余恢复码数量。
    for _ in range(get_settings().recovery_code_count - len(rows)):
        burn_hash_time(candidate)
    if matched_id is None:
        return False

    result = db.execute(
        update(RecoveryCode)
        .where(RecoveryCode.id == matched_id)
        .where(RecoveryCode.used == false())
        .values(used=True, used_at=now or datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def remaining_recovery_codes(db: Session, account_id: UUID) -> int:
    """统计未使用恢复码数量。"""
    return db.execute(
        select(func.count(RecoveryCode.id))
        .where(RecoveryCode.account_id == account_id)
        .where(RecoveryCode.used == false())
    ).scalar_one()
