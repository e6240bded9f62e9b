from __future__ import annotations

from dataclasses import dataclass

import httpx

from agent_relay.core.config import AppSettings, get_settings
from agent_relay.core.exceptions import AppError


class SpeechSynthesisError(AppError):
    status_code = 502
    error_type = "SPEECH_SYNTHESIS_ERROR"


@dataclass
class SpeechSynthesisService:
    api_key: str
    voice_id: str
    model_id: str = "eleven_monolingual_v1"
    base_url: str = "https://api.elevenlabs.io"
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "SpeechSynthesisService":
        settings = settings or get_settings()
        if not settings.eleven_api_key or not settings.eleven_voice_id:
            raise SpeechSynthesisError("Speech synthesis is not configured.")
        return cls(
            api_key=settings.eleven_api_key,
            voice_id=settings.eleven_voice_id,
            model_id=settings.eleven_model_id,
            base_url=settings.eleven_api_base.rstrip("/"),
            timeout=float(settings.http_timeout_sec),
        )

    async def synthesize(self, text: str) -> bytes:
        content = text.strip()
        if not content:
            raise SpeechSynthesisError("Text cannot be empty.")

        url = f"{self.base_url}/v1/text-to-speech/{self.voice_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    json={"text": content, "model_id": self.model_id},
                    headers={"xi-api-key": self.api_key},
                )
        except httpx.RequestError as exc:
            raise SpeechSynthesisError("Speech service is unavailable.") from exc

        if response.status_code != 200:
            raise SpeechSynthesisError(
                "Speech synthesis failed.",
                details={"status_code": response.status_code},
            )

        return response.content
