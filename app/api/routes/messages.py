from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.api.dependencies import get_messaging_service
from app.api.routes.sessions import SessionId
from app.core.auth import verify_api_key
from app.core.file_validation import load_media_upload
from app.schemas.common import ApiResponse
from app.schemas.message import SendMediaRequest, SendMessageResponse, SendTextRequest
from app.services.messaging_service import MessagingService, SentMessage

router = APIRouter(
    prefix="/sessions",
    tags=["Messages"],
    dependencies=[Depends(verify_api_key)],
)

Service = Annotated[MessagingService, Depends(get_messaging_service)]


def media_form(
    to: Annotated[str, Form(description="Recipient phone number.")],
    caption: Annotated[str | None, Form(description="Optional caption.")] = None,
) -> SendMediaRequest:
    """Validate multipart form fields with the same rules as JSON bodies."""
    try:
        return SendMediaRequest(to=to, caption=caption)
    except ValidationError as exc:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in exc.errors()]
        ) from exc


def _sent(result: SentMessage) -> ApiResponse[SendMessageResponse]:
    return ApiResponse(
        data=SendMessageResponse(message_id=result.message_id, to=result.chat_id),
        message="Message sent successfully",
    )


@router.post("/{session_id}/send-text", response_model=ApiResponse[SendMessageResponse])
async def send_text(
    session_id: SessionId,
    payload: SendTextRequest,
    service: Service,
) -> ApiResponse[SendMessageResponse]:
    """Send a text message.

    Requires the session to be ``ready``. Subject to anti-ban pacing when
    enabled: a refused send returns 429 with ``Retry-After``.
    """
    result = await service.send_text(session_id, payload.to, payload.message)
    return _sent(result)


@router.post("/{session_id}/send-media", response_model=ApiResponse[SendMessageResponse])
async def send_media(
    session_id: SessionId,
    service: Service,
    form: Annotated[SendMediaRequest, Depends(media_form)],
    file: UploadFile = File(..., description="Image, video, audio or document (max 10MB)."),
) -> ApiResponse[SendMessageResponse]:
    """Send an uploaded file as a media message, with an optional caption."""
    media = await load_media_upload(file)
    result = await service.send_media(session_id, form.to, media, form.caption)
    return _sent(result)
