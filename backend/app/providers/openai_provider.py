from typing import Dict, Any, Optional, List
import time
import logging
import openai

from app.core.config import get_settings
from app.core.model_capabilities import ModelRegistry
from .base import LLMProvider, ProviderResponse

settings = get_settings()
logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    def __init__(self):
        self.client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.default_model = settings.OPENAI_MODEL
        self.embedding_model = settings.EMBEDDING_MODEL

    def _build_request(self, messages: List[Dict[str, Any]], options: Dict[str, Any]) -> Dict[str, Any]:
        model = options.get("model") or self.default_model
        caps = ModelRegistry.get_capabilities(model)

        req: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.get("role"), "content": m.get("content", "")} for m in messages],
        }

        max_tokens = options.get("max_tokens")
        if max_tokens:
            if caps.max_output_tokens:
                max_tokens = min(max_tokens, caps.max_output_tokens)
            req["max_completion_tokens"] = max_tokens

        temperature = options.get("temperature")
        if temperature is not None and caps.supports_temperature:
            req["temperature"] = temperature

        if options.get("json_mode") and caps.supports_json_mode:
            req["response_format"] = {"type": "json_object"}

        return req

    async def generate(
        self,
        messages: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None
    ) -> ProviderResponse:
        options = options or {}
        req = self._build_request(messages, options)

        start = time.time()
        response = await self.client.chat.completions.create(**req)
        latency = time.time() - start

        content = response.choices[0].message.content or ""
        meta_data: Dict[str, Any] = {
            "provider": "openai",
            "model": req["model"],
            "finish_reason": response.choices[0].finish_reason,
            "latency": latency,
        }
        if response.usage:
            meta_data["usage"] = response.usage.model_dump()

        logger.info(f"OpenAI Response: model={req['model']}, content_len={len(content)}, latency={latency:.2f}s")
        return ProviderResponse(content=content, meta_data=meta_data)

    async def stream_generate(
        self,
        messages: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None
    ):
        """Return the raw chat-completions stream; chunks expose choices[0].delta.content."""
        options = options or {}
        req = self._build_request(messages, options)
        req["stream"] = True
        try:
            return await self.client.chat.completions.create(**req)
        except Exception as e:
            logger.exception(f"OpenAI Stream Error: {e}")
            raise

    async def embed(self, text: str) -> List[float]:
        response = await self.client.embeddings.create(
            model=self.embedding_model,
            input=text,
        )
        return response.data[0].embedding
