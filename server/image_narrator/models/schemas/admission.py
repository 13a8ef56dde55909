"""准入判定相关模型。"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ReasonKind(str, Enum):
    ALLOWED = "Allowed"
    RATE_LIMITED = "RateLimited"
    BOT = "Bot"
    SPOOFED_BOT = "SpoofedBot"
    HOSTING_IP = "HostingIp"
    SHIELDED = "Shielded"


class Conclusion(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class RuleMode(str, Enum):
    LIVE = "LIVE"
    DRY_RUN = "DRY_RUN"


@dataclass
class RuleResult:
    """单条规则的评估结果"""
    rule: str
    conclusion: Conclusion
    reason_kind: ReasonKind = ReasonKind.ALLOWED
    spoofed: bool = False
    detail: str = ""
    # 令牌桶规则：距下次补充的秒数
    reset_after: Optional[float] = None

    @property
    def denied(self) -> bool:
        return self.conclusion == Conclusion.DENY


@dataclass
class AdmissionDecision:
    """
    一次请求的准入结论，在任何推理调用之前计算一次。

    allowed=False 时流水线立即终止，reason_kind 决定返回的状态码。
    """
    allowed: bool
    reason_kind: ReasonKind
    results: List[RuleResult] = field(default_factory=list)
    ip: str = ""
    fingerprint: str = ""
    retry_after: Optional[float] = None

    @property
    def denied(self) -> bool:
        return not self.allowed
