from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..config import ExtractionConfig
from ..errors import ExtractionServiceError
from ..models import ExtractionResponse, Product
from .prompts import SYSTEM_PROMPT_PIPELINE, build_user_prompt

logger = logging.getLogger(__name__)


def _extract_json(text: str) -> Dict[str, Any]:
    text = text.strip()
    if text.startswith("{") and text.endswith("}"):
        return json.loads(text)
    m = re.search(r"\{.*\}", text, re.DOTALL)
    if not m:
        raise ValueError(f"No JSON object in response: {text[:200]}")
    return json.loads(m.group(0))


def parse_products(payload: Dict[str, Any]) -> List[Product]:
    raw = payload.get("products")
    if raw is None:
        raw = payload.get("productos")
    if not isinstance(raw, list):
        raise ValueError("response has no 'products' list")
    products: List[Product] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name") or item.get("molecule") or item.get("molecula")
        if not name or not str(name).strip():
            continue
        category = item.get("category") or item.get("area_terapeutica")
        stage = item.get("stage") or item.get("fase_cofepris")
        products.append(
            Product(
                name=str(name).strip(),
                category=str(category).strip() if category else None,
                stage=str(stage).strip() if stage else None,
            )
        )
    return products


class PipelineExtractor:
    """Metered structured extraction over the OpenAI chat completions API."""

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        client: Optional[Any] = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        if client is None:
            if not self.config.api_key:
                raise RuntimeError(
                    "OpenAI API key not found. Set OPENAI_API_KEY in the environment or .env"
                )
            # The SDK's own retries would bypass quota accounting
            client = OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout_sec,
                max_retries=0,
            )
        self.client = client
        self.model = self.config.model

    @retry(
        retry=retry_if_exception_type(openai.APIConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(2),
        reraise=True,
    )
    def _complete(self, user_content: str) -> Any:
        return self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT_PIPELINE},
                {"role": "user", "content": user_content},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            response_format={"type": "json_object"},
        )

    def extract(self, content: str, source_url: str) -> ExtractionResponse:
        truncated = content[: self.config.max_content_length]
        user_content = build_user_prompt(truncated, source_url)
        try:
            completion = self._complete(user_content)
        except openai.AuthenticationError as exc:
            raise ExtractionServiceError(
                ExtractionServiceError.AUTH,
                "Extraction service rejected credentials; check OPENAI_API_KEY",
            ) from exc
        except openai.RateLimitError as exc:
            code = getattr(exc, "code", None)
            if code == "insufficient_quota" or "insufficient_quota" in str(exc):
                raise ExtractionServiceError(
                    ExtractionServiceError.INSUFFICIENT_QUOTA,
                    f"Extraction service quota exhausted: {exc}",
                ) from exc
            raise ExtractionServiceError(
                ExtractionServiceError.RATE_LIMITED,
                f"Extraction service rate limited: {exc}",
            ) from exc
        except openai.OpenAIError as exc:
            raise ExtractionServiceError(
                ExtractionServiceError.API, f"Extraction service error: {exc}"
            ) from exc

        usage = getattr(completion, "usage", None)
        input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "completion_tokens", 0) or 0)

        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise ExtractionServiceError(
                ExtractionServiceError.MALFORMED,
                f"Extraction response for {source_url} has no choices",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        raw = choices[0].message.content or ""
        try:
            products = parse_products(_extract_json(raw))
        except ValueError as exc:
            raise ExtractionServiceError(
                ExtractionServiceError.MALFORMED,
                f"Malformed extraction response for {source_url}: {exc}",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            ) from exc

        logger.info(
            "Extracted %d products from %s (%d in / %d out tokens)",
            len(products),
            source_url,
            input_tokens,
            output_tokens,
        )
        return ExtractionResponse(
            url=source_url,
            products=products,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
