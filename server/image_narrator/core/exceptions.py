"""服务端异常分类。

所有异常都在最外层由 ``errors.register_exception_handlers`` 转换为固定状态码：
AdmissionDenied -> 429/403，InvalidPayload -> 400，UpstreamFailure 与其余异常 -> 500。
"""

from typing import Optional

from ..models.schemas.admission import AdmissionDecision


class NarratorError(Exception):
    """服务异常基类"""


class AdmissionDenied(NarratorError):
    """准入网关拒绝（限流 / 机器人 / 伪造机器人 / 托管 IP / 防护规则）"""

    def __init__(self, decision: AdmissionDecision):
        super().__init__(f"admission denied: {decision.reason_kind.value}")
        self.decision = decision


class InvalidPayload(NarratorError):
    """缺少图像、类型不符、超出大小、JSON 无法解析或 data URL 格式错误"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UpstreamFailure(NarratorError):
    """视觉或语音服务调用失败（含超时），不区分原因，不重试"""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        message = f"{stage} call failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.stage = stage
        self.cause = cause
