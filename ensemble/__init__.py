"""
Ensemble - 并发 NPC 响应生成

按层级把请求路由到后端 Profile 回退链，自动跳过被限流的 Profile，
新批次提交时取消上一个仍在运行的批次。
"""

from ensemble.factory import create_adjudicator, create_dispatcher, create_orchestrator

__version__ = "0.4.0"

__all__ = ["create_adjudicator", "create_dispatcher", "create_orchestrator", "__version__"]
