"""python -m image_narrator 启动服务"""

import logging

import uvicorn

from .core.config import get_settings


def main() -> None:
  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
  settings = get_settings()
  uvicorn.run("image_narrator.main:app", host=settings.host, port=settings.port, reload=settings.reload)


if __name__ == "__main__":
  main()
