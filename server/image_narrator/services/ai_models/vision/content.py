"""
视觉模型回复内容的解析与规整
与网络调用无关的纯函数，便于单独测试
"""

from typing import Any

from ....models.schemas.vision import ContentPart, MessageContent, PartList, PlainText

FALLBACK_DESCRIPTION = "No description available."
MAX_DESCRIPTION_CHARS = 800


def parse_message_content(raw: Any) -> MessageContent:
    """把 OpenAI 兼容接口返回的 message.content 转为 PlainText / PartList"""
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, list):
        parts = []
        for item in raw:
            if isinstance(item, dict):
                text = item.get("text")
                parts.append(ContentPart(
                    kind=str(item.get("type", "")),
                    text=text if isinstance(text, str) else None,
                ))
            elif isinstance(item, str):
                parts.append(ContentPart(kind="text", text=item))
        return PartList(parts)
    return PlainText("")


def normalize_description(content: MessageContent, max_chars: int = MAX_DESCRIPTION_CHARS) -> str:
    """
    规整描述文本：分段内容以单个空格拼接 -> 去首尾空白 -> 截断到 max_chars；
    结果为空时返回固定回退文本，保证不会把空描述交给语音合成
    """
    if isinstance(content, PlainText):
        text = content.text
    else:
        text = " ".join(part.text for part in content.parts if part.text)

    text = text.strip()[:max_chars]
    return text or FALLBACK_DESCRIPTION
