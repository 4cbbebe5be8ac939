"""
路由模块

- Router: 层级 -> Profile 回退链，跳过被限流的 Profile
- match_profile_name: Profile 名称模糊匹配（可替换/禁用）
"""

from .fuzzy import match_profile_name
from .router import FallbackChain, ProfileSelection, Router

__all__ = ["Router", "ProfileSelection", "FallbackChain", "match_profile_name"]
