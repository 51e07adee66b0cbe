"""Tests for the document analysis service and its response parsing."""

import base64

import httpx
import pytest
from groq import APIConnectionError

from services.document_analysis_service import (
    DocumentAnalyzer,
    normalize_fields,
    parse_model_response,
    strip_code_fences,
)
from services.exceptions import (
    AnalysisError,
    CallerInputError,
    ModelInvocationError,
    ResponseParseError,
)
from services.prompt_service import build_prompt

IDENTITY_JSON = (
    '{"name": "Asha Rao", "idNumber": "1234 5678 9012", "gender": "Female", '
    '"address": "12 Lake Road", "dob": "01/02/1990"}'
)


class TestParseModelResponse:
    def test_json_fence(self):
        assert parse_model_response('```json\n{"name":"A"}\n```') == {"name": "A"}

    def test_plain_fence(self):
        assert parse_model_response('```\n{"name":"A"}\n```') == {"name": "A"}

    def test_uppercase_tag(self):
        assert parse_model_response('```JSON\n{"name":"A"}\n```') == {"name": "A"}

    def test_no_fence(self):
        assert parse_model_response('  {"name": "A"}  ') == {"name": "A"}

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{}\n```') == "{}"

    @pytest.mark.parametrize("raw", ["Sorry, I cannot read this.", "{name: A}", "", None])
    def test_malformed_raises_parse_error(self, raw):
        with pytest.raises(ResponseParseError):
            parse_model_response(raw)

    def test_non_object_json_is_rejected(self):
        with pytest.raises(ResponseParseError):
            parse_model_response('["a", "b"]')


class TestNormalizeFields:
    def test_missing_keys_filled_and_reported(self):
        fields, missing, unexpected = normalize_fields("caste-certificate", {})
        assert fields == {"casteName": ""}
        assert missing == ["casteName"]
        assert unexpected == []

    def test_unexpected_keys_dropped_and_reported(self):
        fields, missing, unexpected = normalize_fields(
            "caste-certificate", {"casteName": "X", "religion": "Y"}
        )
        assert fields == {"casteName": "X"}
        assert missing == []
        assert unexpected == ["religion"]

    def test_values_become_strings(self):
        fields, _, _ = normalize_fields(
            "grade-transcript",
            {"name": "A", "seatNo": 1042, "motherName": None, "boardName": "Pune", "percentage": 88.5},
        )
        assert fields["seatNo"] == "1042"
        assert fields["motherName"] == ""
        assert fields["percentage"] == "88.5"

    def test_unknown_type_passes_keys_through(self):
        fields, missing, unexpected = normalize_fields("passport", {"name": "A", "number": 7})
        assert fields == {"name": "A", "number": "7"}
        assert missing == [] and unexpected == []


class TestDocumentAnalyzer:
    @pytest.mark.asyncio
    async def test_returns_field_map(self, fake_groq, png_bytes):
        client = fake_groq(f"```json\n{IDENTITY_JSON}\n```")
        analyzer = DocumentAnalyzer(client=client, model="vision-model")

        result = await analyzer.analyze(png_bytes, "image/png", "identity-card")

        assert result.doc_type == "identity-card"
        assert set(result.fields) == {"name", "idNumber", "gender", "address", "dob"}
        assert result.fields["name"] == "Asha Rao"
        assert result.missing_fields == []

    @pytest.mark.asyncio
    async def test_sends_prompt_and_image(self, fake_groq, png_bytes):
        client = fake_groq(IDENTITY_JSON)
        analyzer = DocumentAnalyzer(client=client, model="vision-model")

        await analyzer.analyze(png_bytes, "image/png", "identity-card")

        call = client.calls[0]
        assert call["model"] == "vision-model"
        text_part, image_part = call["messages"][0]["content"]
        assert text_part["text"] == build_prompt("identity-card")
        expected_url = "data:image/png;base64," + base64.b64encode(png_bytes).decode("utf-8")
        assert image_part["image_url"]["url"] == expected_url

    @pytest.mark.asyncio
    async def test_malformed_response_is_analysis_error(self, fake_groq, png_bytes):
        analyzer = DocumentAnalyzer(client=fake_groq("I could not find any document."))

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze(png_bytes, "image/png", "identity-card")
        assert isinstance(exc_info.value, ResponseParseError)

    @pytest.mark.asyncio
    async def test_transport_failure_is_analysis_error(self, fake_groq, png_bytes):
        error = APIConnectionError(request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))
        analyzer = DocumentAnalyzer(client=fake_groq(error))

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze(png_bytes, "image/png", "identity-card")
        assert isinstance(exc_info.value, ModelInvocationError)

    @pytest.mark.asyncio
    async def test_missing_api_key_is_model_invocation_error(self, png_bytes):
        analyzer = DocumentAnalyzer(client=None)

        with pytest.raises(ModelInvocationError):
            await analyzer.analyze(png_bytes, "image/png", "identity-card")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("image, doc_type", [(b"", "identity-card"), (b"img", ""), (b"img", "  ")])
    async def test_caller_input_rejected_before_model_call(self, fake_groq, image, doc_type):
        client = fake_groq(IDENTITY_JSON)
        analyzer = DocumentAnalyzer(client=client)

        with pytest.raises(CallerInputError):
            await analyzer.analyze(image, "image/png", doc_type)
        assert client.calls == []
