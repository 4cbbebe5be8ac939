"""
Profile 名称模糊匹配

纯函数，与回退链解析流程解耦：Router 先做精确匹配，失败后才调用这里。
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Callable, Sequence

# name, candidates -> 匹配到的候选名称或 None
FuzzyMatcher = Callable[[str, Sequence[str]], "str | None"]

DEFAULT_CUTOFF = 0.6


def match_profile_name(
    name: str,
    candidates: Sequence[str],
    cutoff: float = DEFAULT_CUTOFF,
) -> str | None:
    """
    近似匹配 Profile 名称

    匹配顺序：
    1. 忽略大小写/首尾空白的完全匹配
    2. 忽略大小写的子串匹配（取最短的候选，最接近原名）
    3. difflib 相似度匹配（>= cutoff）
    """
    needle = (name or "").strip().lower()
    if not needle or not candidates:
        return None

    lowered = {candidate.strip().lower(): candidate for candidate in candidates}
    if needle in lowered:
        return lowered[needle]

    containing = [
        candidate
        for key, candidate in lowered.items()
        if key and (needle in key or key in needle)
    ]
    if containing:
        return min(containing, key=len)

    close = get_close_matches(needle, list(lowered.keys()), n=1, cutoff=cutoff)
    if close:
        return lowered[close[0]]
    return None
