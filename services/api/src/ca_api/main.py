"""FastAPI 应用入口点。"""

from fastapi import FastAPI

from ca_api.core.config import get_settings
from ca_api.exceptions import register_exception_handlers
from ca_api.middlewares import register_middlewares
from ca_api.api.router import api_router

settings = get_settings()


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "Emoji ID 账号认证接口。\n\n"
            "所有接口统一返回：`{request_id, data, meta}` 或 `{request_id, error}`。\n"
            "会话令牌通过 `ca_session` Cookie 下发，也可用 `Authorization: Bearer` 回传。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、登录、恢复码与会话接口。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
