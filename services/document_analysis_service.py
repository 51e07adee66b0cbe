import base64
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from groq import APIError, AsyncGroq

from config import GROQ_API_KEY, GROQ_MODEL
from logger import get_logger
from models.document_models import ExtractionResult
from models.session_models import FieldMap
from services.exceptions import CallerInputError, ModelInvocationError, ResponseParseError
from services.prompt_service import build_prompt, expected_fields

logger = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove ``` / ```json fences the model sometimes wraps its answer in."""
    return _FENCE.sub("", text).strip()


def parse_model_response(text: Optional[str]) -> Dict[str, Any]:
    if not text:
        raise ResponseParseError("Model returned an empty response.", raw_text=text or "")

    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Model response is not valid JSON: {e}", raw_text=text) from e

    if not isinstance(data, dict):
        raise ResponseParseError(
            f"Model response is JSON but not an object (got {type(data).__name__}).", raw_text=text
        )
    return data


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def normalize_fields(doc_type: str, data: Dict[str, Any]) -> Tuple[FieldMap, List[str], List[str]]:
    """
    Shape parsed model output into a FieldMap.
    Known types keep exactly their expected keys (absent ones become ""),
    unknown types keep whatever the model returned.
    Returns (fields, missing_fields, unexpected_fields).
    """
    expected = expected_fields(doc_type)
    if not expected:
        return {str(k): _as_text(v) for k, v in data.items()}, [], []

    fields = {key: _as_text(data.get(key)) for key in expected}
    missing = [key for key in expected if key not in data]
    unexpected = [str(key) for key in data if key not in expected]
    return fields, missing, unexpected


class DocumentAnalyzer:
    """Sends one document image plus its extraction prompt to a Groq vision model."""

    def __init__(self, client: Optional[AsyncGroq] = None, model: str = GROQ_MODEL):
        self.client = client
        self.model = model

    @classmethod
    def from_config(cls) -> "DocumentAnalyzer":
        client: Optional[AsyncGroq] = None
        if GROQ_API_KEY:
            # single attempt, failures surface straight to the caller
            client = AsyncGroq(api_key=GROQ_API_KEY, max_retries=0)
        return cls(client=client, model=GROQ_MODEL)

    async def _ask_model(self, prompt: str, image_url: str) -> Optional[str]:
        if self.client is None:
            raise ModelInvocationError("GROQ_API_KEY is not configured.")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    }
                ],
                temperature=0,
            )
        except APIError as e:
            raise ModelInvocationError(f"Groq API error: {e}") from e

        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise ModelInvocationError("Groq response has no message content.") from e

    async def analyze(self, image_bytes: bytes, mime_type: str, doc_type: str) -> ExtractionResult:
        if not image_bytes:
            raise CallerInputError("File missing or empty.")
        if not doc_type or not doc_type.strip():
            raise CallerInputError("Document type missing.")

        mime_type = mime_type or "application/octet-stream"
        image_b64 = base64.b64encode(image_bytes).decode("utf-8")
        image_url = f"data:{mime_type};base64,{image_b64}"
        prompt = build_prompt(doc_type)

        logger.info("Analyzing %s document (%d bytes, %s)", doc_type, len(image_bytes), mime_type)

        try:
            raw = await self._ask_model(prompt, image_url)
        except ModelInvocationError as e:
            logger.error("Model invocation failed for %s: %s", doc_type, e)
            raise

        try:
            data = parse_model_response(raw)
        except ResponseParseError as e:
            logger.error(
                "Could not parse model response for %s (%d chars): %s", doc_type, len(e.raw_text), e
            )
            raise

        fields, missing, unexpected = normalize_fields(doc_type, data)
        if missing or unexpected:
            logger.warning(
                "Field mismatch for %s: missing=%s unexpected=%s", doc_type, missing, unexpected
            )

        return ExtractionResult(
            doc_type=doc_type,
            fields=fields,
            missing_fields=missing,
            unexpected_fields=unexpected,
        )
