"""数据库基础模型导出。

仅提供 Base 定义，不执行自动建表或结构同步。
生产环境表结构由 `services/api/sql/` 下的 SQL 脚本维护，测试中使用 `Base.metadata.create_all`。
"""

from ca_api.models.base import Base

__all__ = ["Base"]
