import asyncio
import logging
from typing import List, Dict, Any, Optional
import google.generativeai as genai

from app.core.config import get_settings
from .base import LLMProvider, ProviderResponse

settings = get_settings()
logger = logging.getLogger(__name__)

class GeminiProvider(LLMProvider):
    def __init__(self):
        if not settings.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY is not configured")
        genai.configure(api_key=settings.GEMINI_API_KEY)
        self.default_model = settings.GEMINI_MODEL

    def _convert_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        contents = []
        for m in messages:
            # Gemini chat history only knows "user" and "model"; system text rides as user
            role = "model" if m.get("role") == "assistant" else "user"
            content = m.get("content") or ""
            if content:
                contents.append({"role": role, "parts": [{"text": content}]})
        return contents

    async def generate(
        self,
        messages: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None
    ) -> ProviderResponse:
        options = options or {}
        model_name = options.get("model") or self.default_model
        model_id = model_name if model_name.startswith("models/") else f"models/{model_name}"

        contents = self._convert_messages(messages)
        generation_config = {}
        if options.get("temperature") is not None:
            generation_config["temperature"] = options["temperature"]
        if options.get("max_tokens"):
            generation_config["max_output_tokens"] = options["max_tokens"]

        def _generate_sync():
            model = genai.GenerativeModel(model_id)
            return model.generate_content(contents, generation_config=generation_config or None)

        try:
            response = await asyncio.to_thread(_generate_sync)
            return ProviderResponse(
                content=response.text or "",
                meta_data={"provider": "gemini", "model": model_name}
            )
        except Exception as e:
            logger.error(f"Gemini Provider Error: {e}")
            raise
