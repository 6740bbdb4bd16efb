"""
Generative vision model client.

The client only transports: it returns a RawAnalysisResult and never judges the
content. Transport failures become UpstreamUnavailableError, undecodable output
becomes UpstreamMalformedError. No retries happen here.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict

import httpx
import ollama

from .errors import UpstreamMalformedError, UpstreamUnavailableError
from .models import RawAnalysisResult
from dysapp.util.logging import logger


class IGenerativeModel(ABC):
    """Abstract interface for the image critique model."""

    @abstractmethod
    def analyze_image(self, image_data: bytes, mime_type: str, system_instruction: str,
                      schema: Dict[str, Any]) -> RawAnalysisResult:
        pass


class OllamaVisionModel(IGenerativeModel):
    """Vision model served by a local or remote Ollama instance."""

    def __init__(self, model: str, host: str = None, temperature: float = 0.2,
                 top_p: float = 0.95, top_k: int = 40, client: ollama.Client = None):
        self.model = model
        self.options = {
            'temperature': temperature,
            'top_p': top_p,
            'top_k': top_k,
        }
        self.client = client or ollama.Client(host=host)

    def analyze_image(self, image_data: bytes, mime_type: str, system_instruction: str,
                      schema: Dict[str, Any]) -> RawAnalysisResult:
        messages = [
            {'role': 'system', 'content': system_instruction},
            {
                'role': 'user',
                'content': f"Analyze this {mime_type} design image.",
                'images': [image_data],
            },
        ]

        try:
            response = self.client.chat(
                model=self.model,
                messages=messages,
                format=schema,
                options=self.options,
            )
        except ollama.ResponseError as e:
            logger.log_error("model.analyze_image", e, {"model": self.model, "status_code": e.status_code})
            raise UpstreamUnavailableError(f"Vision model error: {e.error}") from e
        except (ollama.RequestError, httpx.HTTPError, ConnectionError, TimeoutError) as e:
            logger.log_error("model.analyze_image", e, {"model": self.model})
            raise UpstreamUnavailableError("Vision model unreachable") from e

        content = response['message']['content'] or ''
        if not content.strip():
            raise UpstreamMalformedError("Vision model returned an empty response")

        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            logger.log_upstream_rejection([f"invalid JSON: {e.msg}"], content)
            raise UpstreamMalformedError("Vision model returned invalid JSON") from e

        return RawAnalysisResult(payload=payload, raw_text=content)
