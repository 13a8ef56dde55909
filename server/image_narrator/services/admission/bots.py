"""
机器人识别：根据 User-Agent 归类，允许名单之外的自动化客户端一律拒绝；
声称是允许名单内爬虫的请求需通过反向 DNS 校验，否则标记为伪造。
"""

import asyncio
import logging
import re
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ...models.schemas.admission import Conclusion, ReasonKind, RuleMode, RuleResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownBot:
    name: str
    category: str
    pattern: re.Pattern
    # 反向解析域名后缀，为空表示无法校验
    verify_domains: Tuple[str, ...] = ()


def _bot(name: str, category: str, pattern: str, *domains: str) -> KnownBot:
    return KnownBot(name, category, re.compile(pattern, re.IGNORECASE), tuple(domains))


# 顺序即匹配优先级，具体名称在前，泛化特征在后
KNOWN_BOTS: List[KnownBot] = [
    _bot("GOOGLE_CRAWLER", "SEARCH_ENGINE", r"googlebot|google-inspectiontool", ".googlebot.com", ".google.com"),
    _bot("BING_CRAWLER", "SEARCH_ENGINE", r"bingbot|msnbot", ".search.msn.com"),
    _bot("DUCKDUCKGO_CRAWLER", "SEARCH_ENGINE", r"duckduckbot", ".duckduckgo.com"),
    _bot("YANDEX_CRAWLER", "SEARCH_ENGINE", r"yandexbot", ".yandex.ru", ".yandex.net", ".yandex.com"),
    _bot("BAIDU_CRAWLER", "SEARCH_ENGINE", r"baiduspider", ".baidu.com", ".baidu.jp"),
    _bot("APPLE_CRAWLER", "SEARCH_ENGINE", r"applebot", ".applebot.apple.com"),
    _bot("OPENAI_CRAWLER", "AI_CRAWLER", r"gptbot|chatgpt-user|oai-searchbot"),
    _bot("ANTHROPIC_CRAWLER", "AI_CRAWLER", r"claudebot|claude-web|anthropic-ai"),
    _bot("COMMON_CRAWL", "AI_CRAWLER", r"ccbot"),
    _bot("CURL", "HTTP_LIBRARY", r"^curl/"),
    _bot("WGET", "HTTP_LIBRARY", r"^wget/"),
    _bot("PYTHON_REQUESTS", "HTTP_LIBRARY", r"python-requests|python-urllib|aiohttp|httpx"),
    _bot("GO_HTTP", "HTTP_LIBRARY", r"go-http-client"),
    _bot("NODE_FETCH", "HTTP_LIBRARY", r"node-fetch|axios|undici"),
    _bot("HEADLESS_CHROME", "HEADLESS_BROWSER", r"headlesschrome|phantomjs|puppeteer|playwright"),
    _bot("SCRAPY", "GENERIC_BOT", r"scrapy"),
    _bot("GENERIC_BOT", "GENERIC_BOT", r"bot\b|crawler|spider|scraper"),
]


@dataclass
class BotMatch:
    name: str
    category: str
    bot: Optional[KnownBot] = None


def classify_user_agent(user_agent: str) -> Optional[BotMatch]:
    """返回机器人归类，普通浏览器返回 None；缺失 User-Agent 视为自动化客户端"""
    ua = (user_agent or "").strip()
    if not ua:
        return BotMatch(name="MISSING_USER_AGENT", category="UNKNOWN")
    for bot in KNOWN_BOTS:
        if bot.pattern.search(ua):
            return BotMatch(name=bot.name, category=bot.category, bot=bot)
    return None


def is_allowed(match: BotMatch, allow: Sequence[str]) -> bool:
    for entry in allow:
        if entry.upper().startswith("CATEGORY:"):
            if match.category == entry.split(":", 1)[1].upper():
                return True
        elif match.name == entry.upper():
            return True
    return False


class DnsBotVerifier:
    """反向 DNS + 正向确认校验爬虫身份"""

    def __init__(self, cache_size: int = 1024):
        self.cache: Dict[Tuple[str, str], bool] = {}
        self.cache_size = cache_size

    async def verify(self, bot: KnownBot, ip: str) -> bool:
        if not bot.verify_domains:
            return False
        key = (bot.name, ip)
        if key in self.cache:
            return self.cache[key]

        loop = asyncio.get_event_loop()
        verified = await loop.run_in_executor(None, self._verify_sync, bot, ip)
        if len(self.cache) >= self.cache_size:
            self.cache.clear()
        self.cache[key] = verified
        return verified

    @staticmethod
    def _verify_sync(bot: KnownBot, ip: str) -> bool:
        try:
            hostname, _, _ = socket.gethostbyaddr(ip)
        except (socket.herror, socket.gaierror, OSError) as e:
            logger.info(f"[bots] 反向解析失败 {bot.name}: {e}")
            return False
        if not hostname.lower().endswith(bot.verify_domains):
            return False
        try:
            _, _, addresses = socket.gethostbyname_ex(hostname)
        except (socket.herror, socket.gaierror, OSError) as e:
            logger.info(f"[bots] 正向确认失败 {hostname}: {e}")
            return False
        return ip in addresses


class BotRule:
    name = "bot"

    def __init__(
        self,
        allow: Sequence[str] = ("CATEGORY:SEARCH_ENGINE",),
        mode: RuleMode = RuleMode.LIVE,
        verifier: Optional[DnsBotVerifier] = None,
    ):
        self.allow = list(allow)
        self.mode = mode
        self.verifier = verifier

    async def evaluate(self, user_agent: str, ip: str) -> RuleResult:
        match = classify_user_agent(user_agent)
        if match is None:
            return RuleResult(rule=self.name, conclusion=Conclusion.ALLOW)

        if is_allowed(match, self.allow):
            spoofed = False
            if self.verifier is not None and match.bot is not None:
                spoofed = not await self.verifier.verify(match.bot, ip)
                if spoofed:
                    logger.warning(f"[bots] {match.name} 校验失败，标记为伪造")
            return RuleResult(
                rule=self.name,
                conclusion=Conclusion.ALLOW,
                spoofed=spoofed,
                detail=match.name,
            )

        if self.mode == RuleMode.DRY_RUN:
            logger.info(f"[bots] DRY_RUN 识别为 {match.name} ({match.category})，不拦截")
            return RuleResult(rule=self.name, conclusion=Conclusion.ALLOW, detail=match.name)

        logger.info(f"[bots] 拒绝 {match.name} ({match.category})")
        return RuleResult(
            rule=self.name,
            conclusion=Conclusion.DENY,
            reason_kind=ReasonKind.BOT,
            detail=match.name,
        )
