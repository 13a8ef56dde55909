"""准入网关模块"""

from .gate import AdmissionGate, HostingIpClassifier, client_ip
from .bots import BotRule, DnsBotVerifier, classify_user_agent
from .shield import ShieldRule
from .token_bucket import TokenBucket, TokenBucketLimiter

__all__ = [
    "AdmissionGate",
    "HostingIpClassifier",
    "client_ip",
    "BotRule",
    "DnsBotVerifier",
    "classify_user_agent",
    "ShieldRule",
    "TokenBucket",
    "TokenBucketLimiter",
]
