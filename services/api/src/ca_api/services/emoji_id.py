"""Emoji ID 标识空间与唯一分配。

Emoji ID 由 4 个符号组成，每个符号取自固定的 128 个 emoji 字母表，
共约 2^28 种组合。字母表排除国旗、肤色修饰符与 ZWJ 组合序列，
部分符号包含变体选择符（U+FE0F），因此格式校验按用户感知的字素簇切分，
不能按码点或 UTF-16 长度计算。
"""

from __future__ import annotations

import logging
import secrets

import regex
from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ca_api.core.config import get_settings
from ca_api.models.auth import Account

logger = logging.getLogger("ca_api.auth")

EMOJI_ID_LENGTH = 4

EMOJI_ALPHABET: tuple[str, ...] = (
    # 动物
    "🐶", "🐱", "🐭", "🐹", "🐰", "🦊", "🐻", "🐼",
    "🐨", "🐯", "🦁", "🐮", "🐷", "🐸", "🐵", "🐔",
    "🐧", "🐦", "🐤", "🦆", "🦅", "🦉", "🦇", "🐺",
    "🐗", "🐴", "🦄", "🐝", "🐛", "🦋", "🐌", "🐞",
    "🐢", "🐍", "🦎", "🦖", "🦕", "🐙", "🦑", "🦐",
    "🦀", "🐡", "🐠", "🐟", "🐬", "🐳", "🦈", "🐊",
    # 植物
    "🌵", "🌺", "🌲", "🌳", "🌴", "🌱", "🌿", "🍀",
    "🌸", "🍁", "🍄", "🌾", "💐", "🌷", "🌹", "🌻",
    # 食物
    "🥜", "🍎", "🍐", "🍊", "🍋", "🍌", "🍉", "🍇",
    "🍓", "🍈", "🍒", "🍑", "🥭", "🍍", "🥥", "🥝",
    "🍅", "🍆", "🥑", "🥦", "🥕", "🌽", "🥐", "🍞",
    "🧀", "🥚", "🥞", "🥓", "🍔", "🍟", "🍕", "🌭",
    # 活动与物品
    "⚽", "🏀", "🏈", "⚾", "🎾", "🏐", "🎱", "🎲",
    "🎯", "🎳", "🎸", "🎺", "🎻", "🥁", "🎹", "🎨",
    "🎭", "🎪", "🚀", "🚗", "🚲", "⛵", "🚂", "🔑",
    # 本行后四个符号为“基础字符 + U+FE0F”两码点序列。
    "💡", "🔔", "🎈", "🎁", "☀️", "❄️", "☁️", "✈️",
)

_ALPHABET_SET = frozenset(EMOJI_ALPHABET)
_GRAPHEME = regex.compile(r"\X")


def split_symbols(value: str) -> list[str]:
    """按扩展字素簇切分字符串。"""
    return _GRAPHEME.findall(value)


def is_valid_emoji_id(value: object) -> bool:
    """判断是否恰好由 4 个字母表内符号组成。"""
    if not isinstance(value, str) or not value:
        return False
    symbols = split_symbols(value)
    return len(symbols) == EMOJI_ID_LENGTH and all(symbol in _ALPHABET_SET for symbol in symbols)


def random_emoji_id() -> str:
    """使用密码学随机源抽取一个 Emoji ID。"""
    return "".join(secrets.choice(EMOJI_ALPHABET) for _ in range(EMOJI_ID_LENGTH))


def is_emoji_id_taken(db: Session, emoji_id: str) -> bool:
    """单次存在性查询。"""
    return db.execute(select(Account.id).where(Account.emoji_id == emoji_id)).first() is not None


def emoji_id_exhausted() -> HTTPException:
    """分配器重试耗尽，属于可重试的服务错误。"""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "code": "EMOJI_ID_EXHAUSTED",
            "message": "Could not generate an Emoji ID.",
            "details": {
                "reason": "emoji_id_allocator_exhausted",
                "retryable": True,
                "suggestion": "Please try again.",
            },
        },
    )


def generate_unique_emoji_id(db: Session, *, max_attempts: int | None = None) -> str:
    """随机抽取未被占用的 Emoji ID，超过重试上限时抛出 503。"""
    attempts = max_attempts or get_settings().emoji_id_max_attempts
    for _ in range(attempts):
        candidate = random_emoji_id()
        if not is_emoji_id_taken(db, candidate):
            return candidate
    logger.warning("emoji id allocation exhausted attempts=%s", attempts)
    raise emoji_id_exhausted()
