"""
后端 Profile 数据模型
"""

from pydantic import BaseModel, ConfigDict, Field


class BackendProfile(BaseModel):
    """
    一个远程生成端点的连接配置

    Profile 由外部配置持有，调度核心只读取；限流状态按 name 区分。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Profile 唯一名称")
    api: str | None = Field(None, description="端点类型，如 openai / claude / openrouter")
    api_url: str | None = Field(None, alias="api-url", description="自定义 API URL")
    proxy: str | None = Field(None, description="代理地址")
    model: str | None = Field(None, description="默认模型")

    def __hash__(self) -> int:
        return hash(self.name)


# 未配置任何 Profile 时使用的名称（调用方默认连接）
DEFAULT_PROFILE_NAME = "default"


def profile_label(profile: BackendProfile | None) -> str:
    """Profile 的日志/限流键名"""
    return profile.name if profile is not None else DEFAULT_PROFILE_NAME
