"""
防护规则：拦截常见攻击特征（路径穿越 / SQL 注入 / 脚本注入 / 命令注入探测）
"""

import logging
import re
from typing import Iterable, List, Tuple
from urllib.parse import unquote_plus

from ...models.schemas.admission import Conclusion, ReasonKind, RuleMode, RuleResult

logger = logging.getLogger(__name__)

SHIELD_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("path_traversal", re.compile(r"(\.\./|\.\.\\|/etc/passwd|\\windows\\win\.ini)", re.IGNORECASE)),
    ("sql_injection", re.compile(
        r"(\bunion\b\s+(all\s+)?\bselect\b|\bor\b\s+1\s*=\s*1\b|'\s*or\s*'1'\s*=\s*'1|;\s*drop\s+table\b|\bsleep\s*\(\s*\d+\s*\))",
        re.IGNORECASE,
    )),
    ("script_injection", re.compile(r"(<\s*script\b|javascript\s*:|\bon(error|load)\s*=)", re.IGNORECASE)),
    ("command_injection", re.compile(r"(;\s*(cat|wget|curl|nc|bash|sh)\s|\$\(\s*\w+|`[^`]*`|\|\s*(sh|bash)\b)", re.IGNORECASE)),
]

# 参与检查的请求头（小写）
INSPECTED_HEADERS = ("user-agent", "referer", "cookie", "x-forwarded-host")


def find_anomaly(values: Iterable[str]) -> str:
    """返回命中的特征名称，未命中返回空字符串"""
    for raw in values:
        if not raw:
            continue
        decoded = unquote_plus(raw)
        for name, pattern in SHIELD_PATTERNS:
            if pattern.search(raw) or pattern.search(decoded):
                return name
    return ""


class ShieldRule:
    name = "shield"

    def __init__(self, mode: RuleMode = RuleMode.LIVE):
        self.mode = mode

    def evaluate(self, path: str, query: str, headers) -> RuleResult:
        values = [path, query] + [headers.get(h, "") for h in INSPECTED_HEADERS]
        hit = find_anomaly(values)
        if not hit:
            return RuleResult(rule=self.name, conclusion=Conclusion.ALLOW)

        if self.mode == RuleMode.DRY_RUN:
            logger.info(f"[shield] DRY_RUN 命中特征 {hit}，不拦截")
            return RuleResult(rule=self.name, conclusion=Conclusion.ALLOW, detail=hit)

        logger.warning(f"[shield] 命中特征 {hit}，拒绝请求")
        return RuleResult(
            rule=self.name,
            conclusion=Conclusion.DENY,
            reason_kind=ReasonKind.SHIELDED,
            detail=hit,
        )
