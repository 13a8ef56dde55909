"""
命令行上传：python -m image_narrator.client IMAGE [--server URL] [--output FILE]
"""

import argparse
import asyncio
import logging
import sys

from .controller import ClientController, FileInput, SelectedFile, UploadStatus


async def run(image_path: str, server: str, output: str) -> int:
    file_input = FileInput()
    with ClientController(base_url=server) as controller:
        controller.listeners.append(lambda status, message: print(f"[{status.value}] {message}"))
        controller.bind(file_input)

        await file_input.select(SelectedFile.from_path(image_path))

        if controller.status != UploadStatus.DONE:
            return 1
        if controller.description_text:
            print(f"\n{controller.description_text}\n")
        saved = controller.save_audio(output)
        print(f"音频已保存: {saved}")
        return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="上传图像并获取语音描述")
    parser.add_argument("image", help="图像文件路径")
    parser.add_argument("--server", default="http://localhost:8000", help="服务地址")
    parser.add_argument("--output", default="image-description.mp3", help="音频保存路径")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    return asyncio.run(run(args.image, args.server, args.output))


if __name__ == "__main__":
    sys.exit(main())
