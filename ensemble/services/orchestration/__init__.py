"""
Orchestration 模块

提供批次编排相关的组件：
- Orchestrator: 批次编排器，并发执行所有目标并汇总结果
- Dispatcher: 请求分发器，在单个 Profile 上执行请求并沿回退链重试限流错误
- BatchCoordinator: 批次协调器，保证同一时刻只有一个活跃批次
- CancellationToken: 批次级取消令牌
- ErrorClassifier: 错误分类器（纯逻辑，无副作用）
"""

from .cancellation import CancellationToken
from .coordinator import BatchCoordinator, SpawnBatch
from .dispatcher import Dispatcher, DispatchOptions
from .error_classifier import ErrorClassifier
from .orchestrator import Orchestrator, PayloadBuilder, TargetResolver, scene_targets

__all__ = [
    "Orchestrator",
    "Dispatcher",
    "DispatchOptions",
    "BatchCoordinator",
    "SpawnBatch",
    "CancellationToken",
    "ErrorClassifier",
    "PayloadBuilder",
    "TargetResolver",
    "scene_targets",
]
