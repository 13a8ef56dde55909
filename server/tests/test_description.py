import asyncio
from urllib.parse import unquote

import pytest
import requests

from conftest import FakeProviderSession
from image_narrator.core.exceptions import UpstreamFailure
from image_narrator.models.schemas.vision import ContentPart, PartList, PlainText
from image_narrator.services.ai_models.prompts import DEFAULT_USER_PROMPT, PromptsManager
from image_narrator.services.ai_models.vision import (
    FALLBACK_DESCRIPTION,
    OpenAIVisionAdapter,
    normalize_description,
    parse_message_content,
)
from image_narrator.services.description_service import DescriptionService
from image_narrator.services.response_composer import decode_header_text, encode_header_text


def test_plain_text_is_trimmed():
    assert normalize_description(PlainText("  A dog on a sofa.\n")) == "A dog on a sofa."


def test_part_list_joins_text_parts_with_single_spaces():
    content = PartList([
        ContentPart("text", "One."),
        ContentPart("image_url"),
        ContentPart("text", ""),
        ContentPart("text", "Two."),
    ])
    assert normalize_description(content) == "One. Two."


def test_truncation_happens_after_trimming():
    assert normalize_description(PlainText("   " + "b" * 1000)) == "b" * 800


def test_empty_results_fall_back():
    assert normalize_description(PlainText("")) == FALLBACK_DESCRIPTION
    assert normalize_description(PartList([])) == FALLBACK_DESCRIPTION
    assert normalize_description(PartList([ContentPart("refusal")])) == FALLBACK_DESCRIPTION


def test_parse_message_content_shapes():
    assert parse_message_content("hi") == PlainText("hi")
    assert parse_message_content(None) == PlainText("")
    assert parse_message_content([{"type": "text", "text": "a"}, {"type": "x", "text": 3}]) == PartList([
        ContentPart("text", "a"),
        ContentPart("x", None),
    ])


def test_header_encoding_matches_encode_uri_component():
    assert encode_header_text("A cat; 50% off! (today)") == "A%20cat%3B%2050%25%20off!%20(today)"
    assert decode_header_text(encode_header_text("naïve – 東京")) == "naïve – 東京"
    assert unquote(encode_header_text("x*y~z'")) == "x*y~z'"


def test_vision_adapter_wraps_http_errors():
    session = FakeProviderSession()
    session.vision_error = requests.Timeout("read timed out")
    adapter = OpenAIVisionAdapter(api_key="k", session=session, prompts_manager=PromptsManager())

    with pytest.raises(UpstreamFailure) as exc_info:
        asyncio.run(adapter.describe("data:image/png;base64,AAAA"))
    assert exc_info.value.stage == "vision"


def test_vision_adapter_respects_max_chars():
    session = FakeProviderSession()
    session.vision_content = "c" * 500
    adapter = OpenAIVisionAdapter(api_key="k", session=session, max_chars=100, prompts_manager=PromptsManager())

    assert asyncio.run(adapter.describe("data:image/png;base64,AAAA")) == "c" * 100


def test_prompts_manager_loads_yaml_and_falls_back(tmp_path):
    (tmp_path / "scene.yaml").write_text(
        "system: Be brief.\ntemplates:\n  default: Say what you see.\n",
        encoding="utf-8",
    )
    manager = PromptsManager(str(tmp_path))

    assert manager.get_all_scenes() == ["scene"]
    assert manager.get_system_prompt("scene") == "Be brief."
    assert manager.get_prompt("scene") == "Say what you see."
    assert manager.get_prompt("scene", "missing") == DEFAULT_USER_PROMPT
    assert manager.get_prompt("unknown") == DEFAULT_USER_PROMPT


def test_bundled_prompts_match_defaults():
    manager = PromptsManager()

    assert "blind and low-vision users" in manager.get_system_prompt("image_description")
    assert manager.get_prompt("image_description").startswith("Describe this image for a blind user")


def test_description_service_keeps_truncated_text_as_is():
    session = FakeProviderSession()
    session.vision_content = "a" * 799 + " " + "b" * 200
    service = DescriptionService(OpenAIVisionAdapter(api_key="k", session=session, prompts_manager=PromptsManager()))

    description = asyncio.run(service.describe("data:image/png;base64,AAAA"))
    assert description == "a" * 799 + " "
