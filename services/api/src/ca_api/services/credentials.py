"""iCal 地址凭据哈希服务。

iCal 订阅地址按口令同等对待：不落日志、不存明文、恒定时间比较。
地址本身是服务商随机生成的高熵字符串，因此使用 PBKDF2-SHA256
迭代拉伸即可，不需要内存困难型算法。
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from urllib.parse import urlsplit

from ca_api.core.config import get_settings

HASH_ALGORITHM = "pbkdf2_sha256"
MIN_DIGEST_BYTES = 32

ICAL_URL_SCHEMES = {"https", "webcal"}
ICAL_URL_MAX_LENGTH = 2048


@dataclass(frozen=True)
class HashedCredential:
    """哈希结果。

    `hash` 形如 `pbkdf2_sha256$<迭代次数>$<摘要 hex>`，迭代次数随摘要一起保存，
    调整 `credential_hash_iterations` 不影响已有记录的校验；`salt` 为 hex 字符串。
    """

    hash: str
    salt: str


def _derive(secret: str, salt: bytes, iterations: int, length: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations, dklen=length)


def hash_secret(secret: str) -> HashedCredential:
    """使用新随机盐生成摘要，同一输入每次结果不同。"""
    settings = get_settings()
    salt = secrets.token_bytes(settings.credential_salt_bytes)
    iterations = settings.credential_hash_iterations
    digest = _derive(secret, salt, iterations, settings.credential_hash_bytes)
    return HashedCredential(hash=f"{HASH_ALGORITHM}${iterations}${digest.hex()}", salt=salt.hex())


def verify_secret(candidate: str, stored: HashedCredential) -> bool:
    """用已存盐重新派生并恒定时间比较，存储值异常时返回 False。"""
    try:
        algorithm, iterations_text, digest_hex = stored.hash.split("$", 2)
        if algorithm != HASH_ALGORITHM:
            return False
        iterations = int(iterations_text)
        salt = bytes.fromhex(stored.salt)
        expected = bytes.fromhex(digest_hex)
    except (AttributeError, TypeError, ValueError):
        return False
    # 截断的摘要是其完整摘要的前缀，必须按长度拒绝。
    if iterations <= 0 or not salt or len(expected) < MIN_DIGEST_BYTES:
        return False

    actual = _derive(candidate, salt, iterations, len(expected))
    return hmac.compare_digest(actual, expected)


def burn_hash_time(secret: str) -> None:
    """执行一次与真实校验等价的派生并丢弃结果，用于对齐失败路径耗时。"""
    hash_secret(secret)


def is_plausible_ical_url(url: object) -> bool:
    """结构校验：https/webcal 协议且主机名非空，不做网络请求。"""
    if not isinstance(url, str) or not url or len(url) > ICAL_URL_MAX_LENGTH:
        return False
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname
    except ValueError:
        return False
    return parsed.scheme.lower() in ICAL_URL_SCHEMES and bool(hostname)
