from pydantic import BaseModel
from typing import Optional, Dict

class ModelCapability(BaseModel):
    supports_temperature: bool = True
    supports_json_mode: bool = True
    max_output_tokens: Optional[int] = None

class ModelRegistry:
    _capabilities: Dict[str, ModelCapability] = {
        "gpt-4o-mini": ModelCapability(max_output_tokens=16384),
        "gpt-4o": ModelCapability(max_output_tokens=16384),
        "gpt-4-turbo": ModelCapability(max_output_tokens=4096),
        # reasoning models reject custom temperature
        "gpt-5-mini": ModelCapability(supports_temperature=False),
        "gpt-5-nano": ModelCapability(supports_temperature=False),
    }

    _defaults = ModelCapability()

    @classmethod
    def get_capabilities(cls, model_id: str) -> ModelCapability:
        if not model_id:
            return cls._defaults

        if model_id in cls._capabilities:
            return cls._capabilities[model_id]

        if model_id.startswith("gpt-5"):
            return cls._capabilities["gpt-5-mini"]

        if model_id.startswith(("o1", "o3", "o4")):
            return ModelCapability(supports_temperature=False, supports_json_mode=False)

        return cls._defaults
