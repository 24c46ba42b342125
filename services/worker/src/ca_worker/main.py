"""过期会话清理进程。

主流程:
1) 在独立事务内删除 `expires_at` 已过的会话
2) 记录删除条数
3) 休眠固定间隔后重复

清理是幂等的，与接口服务的会话签发、校验并发执行也安全；
会话是否有效始终以 `expires_at` 判断，清理只负责回收存储。
"""

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from ca_api.services.sessions import purge_expired_sessions
from ca_worker.config import get_settings

logger = logging.getLogger("ca_worker")


def _setup_logging() -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _now_iso() -> str:
    """返回当前 UTC 时间的 ISO 字符串。"""
    return datetime.now(timezone.utc).isoformat()


def run_once(engine: Engine, *, now: datetime | None = None) -> int:
    """执行一轮清理并返回删除条数。"""
    with Session(engine) as db, db.begin():
        return purge_expired_sessions(db, now=now)


def main() -> None:
    """工作进程主循环。"""
    _setup_logging()
    settings = get_settings()
    engine = create_engine(settings.database_url, future=True, pool_pre_ping=True)

    logger.info("session purge worker started worker_id=%s at=%s", settings.worker_id, _now_iso())

    while True:
        try:
            deleted = run_once(engine)
            logger.info("purged expired sessions count=%s", deleted)
            time.sleep(settings.worker_purge_interval_seconds)
        except KeyboardInterrupt:
            logger.info("worker stopped")
            return
        except Exception:
            # 数据库暂不可用等错误只记录，退避后进入下一轮。
            logger.exception("session purge failed")
            time.sleep(settings.worker_error_backoff_seconds)


if __name__ == "__main__":
    main()
