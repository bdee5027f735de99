"""OpenAI Responses API client for multimodal analysis."""

import base64
from dataclasses import dataclass

from openai import AsyncOpenAI

from meal_scan.services.analysis import (
    ContentPart,
    InferenceClient,
    ModelProfile,
    PartKind,
    to_data_url,
)

AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
}


@dataclass
class OpenAIInferenceClient(InferenceClient):
    """Inference client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIInferenceClient":
        """Create an OpenAI inference client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate(self, profile: ModelProfile, parts: list[ContentPart]) -> str:
        """Call OpenAI Responses API and return the reply text."""
        request_payload: dict[str, object] = {
            "model": profile.model,
            "instructions": profile.instructions,
            "input": [
                {
                    "role": "user",
                    "content": [_to_input_part(part) for part in parts],
                }
            ],
            "store": profile.store,
        }
        if profile.output_schema is not None:
            request_payload["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": f"{profile.name.value}_nutrition",
                    "strict": False,
                    "schema": profile.output_schema,
                }
            }
        if profile.web_search:
            request_payload["tools"] = [{"type": "web_search"}]
        if profile.reasoning_effort:
            request_payload["reasoning"] = {"effort": profile.reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        await self.client.close()


def _to_input_part(part: ContentPart) -> dict[str, object]:
    if part.kind is PartKind.TEXT:
        return {"type": "input_text", "text": part.text or ""}
    if part.data is None:
        raise ValueError(f"{part.kind.value} part has no data")
    if part.kind is PartKind.IMAGE:
        return {
            "type": "input_image",
            "image_url": to_data_url(part.data, part.mime_type or "image/jpeg"),
        }
    audio_format = AUDIO_FORMATS.get(part.mime_type or "", "wav")
    return {
        "type": "input_audio",
        "input_audio": {
            "data": base64.b64encode(part.data).decode("utf-8"),
            "format": audio_format,
        },
    }
