from fastapi import APIRouter, Depends, Response

from agent_relay.models.chat import ErrorResponse
from agent_relay.models.speech import SpeechRequest
from agent_relay.services.speech import SpeechSynthesisService

router = APIRouter(tags=["speech"])


def get_speech_service() -> SpeechSynthesisService:
    return SpeechSynthesisService.from_settings()


@router.post(
    "/tts",
    response_class=Response,
    responses={200: {"content": {"audio/mpeg": {}}}, 502: {"model": ErrorResponse}},
)
async def synthesize_speech(
    request: SpeechRequest,
    service: SpeechSynthesisService = Depends(get_speech_service),
) -> Response:
    audio = await service.synthesize(request.text)
    return Response(content=audio, media_type="audio/mpeg")
