"""工具层级代理（Judge / Guardian）"""

from .adjudicator import Adjudicator, AuditReport, Verdict
from .parsing import extract_json_object

__all__ = ["Adjudicator", "AuditReport", "Verdict", "extract_json_object"]
