"""Image Narrator：图像 -> 描述 -> 语音。"""

__version__ = "0.1.0"
