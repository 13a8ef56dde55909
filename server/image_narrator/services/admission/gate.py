"""
准入网关
在任何推理调用之前依次执行：防护规则 -> 机器人识别 -> 令牌桶，
放行后再检查托管 IP 与伪造机器人标记。
"""

import hashlib
import hmac
import ipaddress
import logging
from typing import List, Optional, Sequence

from fastapi import Request

from ...core.config import AdmissionConfig
from ...models.schemas.admission import (
    AdmissionDecision,
    Conclusion,
    ReasonKind,
    RuleMode,
    RuleResult,
)
from .bots import BotRule, DnsBotVerifier
from .shield import ShieldRule
from .token_bucket import TokenBucketLimiter

logger = logging.getLogger(__name__)


def _mode(value: str) -> RuleMode:
    try:
        return RuleMode(str(value).upper())
    except ValueError:
        logger.warning(f"未知规则模式 {value}，按 LIVE 处理")
        return RuleMode.LIVE


def client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else ""


class HostingIpClassifier:
    """托管 / 数据中心网段判断"""

    def __init__(self, ranges: Sequence[str] = ()):
        self.networks = []
        for cidr in ranges:
            try:
                self.networks.append(ipaddress.ip_network(cidr, strict=False))
            except ValueError:
                logger.warning(f"忽略无效网段配置: {cidr}")

    def is_hosting(self, ip: str) -> bool:
        try:
            addr = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(addr.version == net.version and addr in net for net in self.networks)


class AdmissionGate:
    """请求准入判定，拒绝时不产生任何推理开销"""

    def __init__(
        self,
        config: AdmissionConfig,
        limiter: Optional[TokenBucketLimiter] = None,
        verifier: Optional[DnsBotVerifier] = None,
    ):
        self.config = config
        self.shield = ShieldRule(mode=_mode(config.SHIELD_MODE))
        if verifier is None and config.VERIFY_BOTS:
            verifier = DnsBotVerifier()
        self.bots = BotRule(allow=config.BOT_ALLOW, mode=_mode(config.BOT_MODE), verifier=verifier)
        self.rate_limit_mode = _mode(config.RATE_LIMIT_MODE)
        self.limiter = limiter or TokenBucketLimiter(
            refill_rate=config.REFILL_RATE,
            interval=config.INTERVAL,
            capacity=config.CAPACITY,
        )
        self.hosting = HostingIpClassifier(config.HOSTING_IP_RANGES)
        if not config.KEY:
            logger.warning("未配置 ADMISSION_KEY，客户端指纹使用空密钥")

    def fingerprint(self, ip: str) -> str:
        """限流 key：客户端 IP 的 HMAC 指纹，原始 IP 不进入桶表与日志"""
        key = (self.config.KEY or "").encode("utf-8")
        return hmac.new(key, ip.encode("utf-8"), hashlib.sha256).hexdigest()[:16]

    async def _rate_limit(self, fingerprint: str, requested: int) -> RuleResult:
        allowed, reset_after = await self.limiter.acquire(fingerprint, requested)
        if allowed:
            return RuleResult(rule="token_bucket", conclusion=Conclusion.ALLOW, reset_after=reset_after)
        if self.rate_limit_mode == RuleMode.DRY_RUN:
            logger.info(f"[token_bucket] DRY_RUN {fingerprint} 令牌不足，不拦截")
            return RuleResult(rule="token_bucket", conclusion=Conclusion.ALLOW, reset_after=reset_after)
        return RuleResult(
            rule="token_bucket",
            conclusion=Conclusion.DENY,
            reason_kind=ReasonKind.RATE_LIMITED,
            reset_after=reset_after,
        )

    async def protect(self, request: Request, requested: int = 1) -> AdmissionDecision:
        ip = client_ip(request, self.config.TRUST_FORWARDED_FOR)
        fingerprint = self.fingerprint(ip)
        results: List[RuleResult] = []

        def decide(result: RuleResult) -> AdmissionDecision:
            return AdmissionDecision(
                allowed=False,
                reason_kind=result.reason_kind,
                results=results,
                ip=ip,
                fingerprint=fingerprint,
                retry_after=result.reset_after,
            )

        shield_result = self.shield.evaluate(request.url.path, request.url.query, request.headers)
        results.append(shield_result)
        if shield_result.denied:
            return decide(shield_result)

        bot_result = await self.bots.evaluate(request.headers.get("user-agent", ""), ip)
        results.append(bot_result)
        if bot_result.denied:
            return decide(bot_result)

        bucket_result = await self._rate_limit(fingerprint, requested)
        results.append(bucket_result)
        if bucket_result.denied:
            logger.info(f"[admission] {fingerprint} 触发限流，{bucket_result.reset_after:.1f}s 后补充")
            return decide(bucket_result)

        # 名义上放行后的附加检查
        if self.hosting.is_hosting(ip):
            logger.info(f"[admission] {fingerprint} 来自托管网段，拒绝")
            return AdmissionDecision(
                allowed=False,
                reason_kind=ReasonKind.HOSTING_IP,
                results=results,
                ip=ip,
                fingerprint=fingerprint,
            )
        if any(r.spoofed for r in results):
            return AdmissionDecision(
                allowed=False,
                reason_kind=ReasonKind.SPOOFED_BOT,
                results=results,
                ip=ip,
                fingerprint=fingerprint,
            )

        return AdmissionDecision(
            allowed=True,
            reason_kind=ReasonKind.ALLOWED,
            results=results,
            ip=ip,
            fingerprint=fingerprint,
        )
