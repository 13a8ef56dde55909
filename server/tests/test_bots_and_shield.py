import asyncio
import socket

import pytest

from image_narrator.models.schemas.admission import Conclusion, ReasonKind, RuleMode
from image_narrator.services.admission import BotRule, DnsBotVerifier, ShieldRule, classify_user_agent
from image_narrator.services.admission.bots import KNOWN_BOTS, is_allowed
from image_narrator.services.admission.gate import HostingIpClassifier

GOOGLEBOT = next(b for b in KNOWN_BOTS if b.name == "GOOGLE_CRAWLER")


@pytest.mark.parametrize("ua, name, category", [
    ("Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)", "GOOGLE_CRAWLER", "SEARCH_ENGINE"),
    ("DuckDuckBot/1.1; (+http://duckduckgo.com/duckduckbot.html)", "DUCKDUCKGO_CRAWLER", "SEARCH_ENGINE"),
    ("Mozilla/5.0 AppleWebKit/537.36 (KHTML, like Gecko; compatible; GPTBot/1.2)", "OPENAI_CRAWLER", "AI_CRAWLER"),
    ("curl/8.5.0", "CURL", "HTTP_LIBRARY"),
    ("python-httpx/0.27.0", "PYTHON_REQUESTS", "HTTP_LIBRARY"),
    ("SomeRandomCrawler/1.0", "GENERIC_BOT", "GENERIC_BOT"),
    ("", "MISSING_USER_AGENT", "UNKNOWN"),
])
def test_classify_user_agent(ua, name, category):
    match = classify_user_agent(ua)
    assert (match.name, match.category) == (name, category)


def test_browsers_are_not_bots():
    assert classify_user_agent(
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
    ) is None


def test_allow_list_by_category_and_name():
    google = classify_user_agent("Googlebot/2.1")
    curl = classify_user_agent("curl/8.5.0")

    assert is_allowed(google, ["CATEGORY:SEARCH_ENGINE"])
    assert not is_allowed(curl, ["CATEGORY:SEARCH_ENGINE"])
    assert is_allowed(curl, ["curl"])


def test_bot_rule_without_verifier_allows_search_engines():
    rule = BotRule(allow=["CATEGORY:SEARCH_ENGINE"], verifier=None)
    result = asyncio.run(rule.evaluate("Googlebot/2.1", "66.249.66.1"))

    assert result.conclusion == Conclusion.ALLOW
    assert not result.spoofed


def test_bot_rule_denies_other_automation():
    result = asyncio.run(BotRule().evaluate("Wget/1.21", "10.0.0.1"))

    assert result.conclusion == Conclusion.DENY
    assert result.reason_kind == ReasonKind.BOT


def test_dns_verifier_confirms_forward_and_reverse(monkeypatch):
    monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("crawl-66-249-66-1.googlebot.com", [], [ip]))
    monkeypatch.setattr(socket, "gethostbyname_ex", lambda host: (host, [], ["66.249.66.1"]))

    assert asyncio.run(DnsBotVerifier().verify(GOOGLEBOT, "66.249.66.1"))


def test_dns_verifier_rejects_foreign_domain(monkeypatch):
    monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("scanner.example.net", [], [ip]))

    assert not asyncio.run(DnsBotVerifier().verify(GOOGLEBOT, "203.0.113.7"))


def test_dns_verifier_rejects_unresolvable_ip(monkeypatch):
    def _fail(ip):
        raise socket.herror(1, "Unknown host")
    monkeypatch.setattr(socket, "gethostbyaddr", _fail)

    assert not asyncio.run(DnsBotVerifier().verify(GOOGLEBOT, "203.0.113.7"))


def test_dns_verifier_rejects_mismatched_forward_lookup(monkeypatch):
    monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("crawl.googlebot.com", [], [ip]))
    monkeypatch.setattr(socket, "gethostbyname_ex", lambda host: (host, [], ["66.249.66.99"]))

    assert not asyncio.run(DnsBotVerifier().verify(GOOGLEBOT, "66.249.66.1"))


def test_shield_allows_ordinary_requests():
    result = ShieldRule().evaluate("/api/describe-image", "", {"user-agent": "Mozilla/5.0"})

    assert result.conclusion == Conclusion.ALLOW


@pytest.mark.parametrize("query", [
    "path=..%2F..%2Fetc%2Fpasswd",
    "id=1%20OR%201%3D1",
    "name=%3Cscript%3Ealert(1)%3C%2Fscript%3E",
    "cmd=%24(whoami)",
])
def test_shield_denies_attack_patterns(query):
    result = ShieldRule().evaluate("/api/describe-image", query, {})

    assert result.conclusion == Conclusion.DENY
    assert result.reason_kind == ReasonKind.SHIELDED


def test_shield_dry_run_only_reports():
    result = ShieldRule(mode=RuleMode.DRY_RUN).evaluate("/", "x=..%2F..%2Fetc%2Fpasswd", {})

    assert result.conclusion == Conclusion.ALLOW
    assert result.detail == "path_traversal"


def test_hosting_ip_classifier_ignores_bad_input():
    classifier = HostingIpClassifier(["52.0.0.0/10", "not-a-cidr"])

    assert classifier.is_hosting("52.1.2.3")
    assert not classifier.is_hosting("8.8.8.8")
    assert not classifier.is_hosting("testclient")
    assert not classifier.is_hosting("::1")
