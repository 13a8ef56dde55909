"""提示词管理模块"""

from .prompts_manager import PromptsManager, DEFAULT_SYSTEM_PROMPT, DEFAULT_USER_PROMPT

__all__ = ["PromptsManager", "DEFAULT_SYSTEM_PROMPT", "DEFAULT_USER_PROMPT"]
