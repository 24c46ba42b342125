"""认证接口请求与结果结构。

字段对外使用 camelCase（`emojiId`、`icalUrl` 等），同时兼容 snake_case 输入。
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ca_api.schemas.common import BaseSchema


class CamelModel(BaseModel):
    """请求体基础结构。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelSchema(BaseSchema):
    """结果结构基础类。"""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    """注册请求。"""

    emoji_id: str | None = Field(default=None, max_length=64, description="可选的自选 Emoji ID，缺省时由服务端生成。")
    ical_url: str = Field(min_length=1, max_length=2048, description="私密 iCal 订阅地址。")


class SigninRequest(CamelModel):
    """登录请求。"""

    emoji_id: str = Field(min_length=1, max_length=64, description="Emoji ID。")
    ical_url: str = Field(min_length=1, max_length=2048, description="注册时使用的 iCal 订阅地址。")


class RecoverRequest(CamelModel):
    """恢复码登录请求。"""

    emoji_id: str = Field(min_length=1, max_length=64, description="Emoji ID。")
    recovery_code: str = Field(min_length=1, max_length=128, description="一次性恢复码。")
    new_ical_url: str | None = Field(default=None, max_length=2048, description="可选的新 iCal 订阅地址。")


class SuggestData(CamelSchema):
    emoji_id: str = Field(description="当前未被占用的 Emoji ID。")


class SignupData(CamelSchema):
    """注册结果，恢复码仅在此返回一次。"""

    emoji_id: str = Field(description="账号 Emoji ID。")
    recovery_codes: list[str] = Field(description="一次性恢复码明文。")
    message: str = Field(description="恢复码保存提示。")


class SigninData(CamelSchema):
    emoji_id: str = Field(description="账号 Emoji ID。")


class RecoverData(CamelSchema):
    """恢复结果。"""

    emoji_id: str = Field(description="账号 Emoji ID。")
    remaining_recovery_codes: int = Field(description="剩余未使用恢复码数量。")
    warning: str | None = Field(default=None, description="恢复码耗尽时的提示。")


class SignoutData(CamelSchema):
    ok: bool = Field(description="是否已完成登出。")


class MeData(CamelSchema):
    emoji_id: str = Field(description="当前会话绑定的 Emoji ID。")
