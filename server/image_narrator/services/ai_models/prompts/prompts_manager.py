"""
提示词管理器
从 server/prompts/*.yaml 加载各场景的系统提示与用户提示模板
"""

import logging
from typing import Dict, Optional
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You describe images to blind and low-vision users in a concise, clear way."
)
DEFAULT_USER_PROMPT = (
    "Describe this image for a blind user in 1–2 clear sentences. "
    "Focus on key objects, layout, and any important visible text. Avoid filler."
)


class PromptsManager:
    """提示词管理器，文件名（不含扩展名）即场景名"""

    def __init__(self, prompts_dir: Optional[str] = None):
        if prompts_dir:
            self.prompts_dir = Path(prompts_dir)
        else:
            # 默认目录：server/prompts/
            self.prompts_dir = Path(__file__).resolve().parents[4] / "prompts"

        self.prompts_cache: Dict[str, Dict] = {}
        self._load_all_prompts()

    def _load_all_prompts(self):
        """加载所有提示词配置文件"""
        if not self.prompts_dir.exists():
            logger.warning(f"提示词目录不存在: {self.prompts_dir}，使用内置提示词")
            return

        yaml_files = list(self.prompts_dir.glob("*.yaml")) + list(self.prompts_dir.glob("*.yml"))
        for yaml_file in yaml_files:
            if yaml_file.name.startswith("_"):
                continue
            try:
                with open(yaml_file, 'r', encoding='utf-8') as f:
                    prompts_data = yaml.safe_load(f)
                if prompts_data:
                    self.prompts_cache[yaml_file.stem] = prompts_data
                    logger.info(f"加载提示词配置: {yaml_file.stem} ({yaml_file.name})")
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"加载提示词文件失败 {yaml_file}: {e}")

        if not self.prompts_cache:
            logger.warning(f"未找到任何提示词配置文件，目录: {self.prompts_dir}")

    def get_system_prompt(self, scene: str) -> str:
        scene_prompts = self.prompts_cache.get(scene) or {}
        return str(scene_prompts.get("system") or DEFAULT_SYSTEM_PROMPT).strip()

    def get_prompt(self, scene: str, template_name: str = "default") -> str:
        """
        获取指定场景的用户提示模板

        Args:
            scene: 场景名称（对应 YAML 文件名）
            template_name: 模板名称，默认为 "default"

        Returns:
            提示词字符串，找不到时返回内置默认提示
        """
        scene_prompts = self.prompts_cache.get(scene)
        if not scene_prompts:
            logger.warning(f"未找到场景 '{scene}' 的提示词配置，使用内置提示词")
            return DEFAULT_USER_PROMPT

        prompt_template = (scene_prompts.get("templates") or {}).get(template_name)
        if not prompt_template:
            logger.warning(f"场景 '{scene}' 中未找到模板 '{template_name}'，使用内置提示词")
            return DEFAULT_USER_PROMPT

        return str(prompt_template).strip()

    def get_all_scenes(self) -> list:
        return list(self.prompts_cache.keys())
