"""Tests for vision-model attribute extraction."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from visual_match.attributes import VisualAttributes
from visual_match.extractor import AttributeExtractor, ExtractionError, SYSTEM_PROMPT


class TestExtract:
    """Tests for successful and degraded extraction."""

    def test_full_response(self, make_client, sneaker_payload, red_square_png):
        extractor = AttributeExtractor(client=make_client(sneaker_payload))
        attrs = extractor.extract(red_square_png)
        assert attrs.objects == ("sneakers",)
        assert attrs.categories == ("footwear",)
        assert attrs.description == "red running shoes"

    def test_request_shape(self, make_client, sneaker_payload, red_square_png):
        client = make_client(sneaker_payload)
        AttributeExtractor(client=client, model="gpt-4o", max_tokens=500).extract(red_square_png)

        assert len(client.completions.calls) == 1
        call = client.completions.calls[0]
        assert call["model"] == "gpt-4o"
        assert call["max_tokens"] == 500
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}

        image_part = call["messages"][1]["content"][1]
        assert image_part["type"] == "image_url"
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    def test_prompt_names_all_fields(self):
        for name in ("objects", "colors", "materials", "categories", "description", "style", "brand"):
            assert f'"{name}"' in SYSTEM_PROMPT

    def test_missing_fields_default(self, make_client):
        extractor = AttributeExtractor(client=make_client({"objects": ["lamp"]}))
        attrs = extractor.extract(b"raw-bytes")
        assert attrs == VisualAttributes(objects=("lamp",))

    def test_empty_object_gives_empty_attributes(self, make_client):
        attrs = AttributeExtractor(client=make_client("{}")).extract(b"raw-bytes")
        assert attrs.is_empty()

    def test_undecodable_bytes_passed_through(self, make_client):
        client = make_client({})
        AttributeExtractor(client=client).extract(b"not really an image")
        url = client.completions.calls[0]["messages"][1]["content"][1]["image_url"]["url"]
        assert url == "data:image/jpeg;base64,bm90IHJlYWxseSBhbiBpbWFnZQ=="

    def test_truncated_response_still_parsed(self, make_client, sneaker_payload):
        client = make_client(sneaker_payload, finish_reason="length")
        attrs = AttributeExtractor(client=client).extract(b"raw")
        assert attrs.colors == ("red",)


class TestExtractionErrors:
    """Tests for fatal extraction failures."""

    def test_api_error_wrapped(self, make_client):
        error = openai.OpenAIError("quota exceeded")
        extractor = AttributeExtractor(client=make_client(error=error))
        with pytest.raises(ExtractionError) as exc_info:
            extractor.extract(b"raw")
        assert exc_info.value.cause is error
        assert exc_info.value.__cause__ is error

    def test_transport_error_wrapped(self, make_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = openai.APIConnectionError(request=request)
        extractor = AttributeExtractor(client=make_client(error=error))
        with pytest.raises(ExtractionError):
            extractor.extract(b"raw")

    def test_no_retries(self, make_client):
        client = make_client(error=openai.OpenAIError("boom"))
        with pytest.raises(ExtractionError):
            AttributeExtractor(client=client).extract(b"raw")
        assert len(client.completions.calls) == 1

    @pytest.mark.parametrize("content", ["not json at all", '{"objects": ["mu', "[1, 2]", "", None])
    def test_unparseable_content(self, make_client, content):
        extractor = AttributeExtractor(client=make_client(content))
        with pytest.raises(ExtractionError):
            extractor.extract(b"raw")

    def test_no_choices(self, make_client):
        extractor = AttributeExtractor(client=make_client("{}", choices=False))
        with pytest.raises(ExtractionError):
            extractor.extract(b"raw")

    def test_non_sdk_transport_error_wrapped(self, make_client):
        error = ConnectionError("connection reset by peer")
        extractor = AttributeExtractor(client=make_client(error=error))
        with pytest.raises(ExtractionError) as exc_info:
            extractor.extract(b"raw")
        assert exc_info.value.cause is error

    def test_unexpected_response_shape_wrapped(self, make_client):
        client = make_client("{}")
        client.completions.create = lambda **kwargs: SimpleNamespace(
            choices=[SimpleNamespace(message=None, finish_reason="stop")]
        )
        with pytest.raises(ExtractionError):
            AttributeExtractor(client=client).extract(b"raw")

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ExtractionError):
            AttributeExtractor().extract(b"raw")

    def test_extraction_error_is_runtime_error(self):
        assert issubclass(ExtractionError, RuntimeError)
