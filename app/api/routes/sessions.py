from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Response, status

from app.api.dependencies import get_messaging_service
from app.core.auth import verify_api_key
from app.schemas.common import ApiResponse
from app.schemas.session import SESSION_ID_PATTERN, CreateSessionRequest, SessionResponse
from app.services.messaging_service import MessagingService
from app.utils.qr import render_qr_png

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
    dependencies=[Depends(verify_api_key)],
)

SessionId = Annotated[
    str,
    Path(
        min_length=3,
        max_length=50,
        pattern=SESSION_ID_PATTERN,
        description="Alphanumeric session id.",
    ),
]
Service = Annotated[MessagingService, Depends(get_messaging_service)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SessionResponse],
)
async def create_session(
    service: Service,
    payload: Annotated[CreateSessionRequest | None, Body()] = None,
) -> ApiResponse[SessionResponse]:
    """Create a session and start its client.

    The session begins in ``initializing`` and moves to ``qr`` once a QR code
    is available at ``GET /sessions/{session_id}/qr``.
    """
    state = await service.create_session(payload.session_id if payload else None)
    return ApiResponse(
        data=SessionResponse.model_validate(state),
        message="Session created successfully",
    )


@router.get("", response_model=ApiResponse[list[SessionResponse]])
def list_sessions(service: Service) -> ApiResponse[list[SessionResponse]]:
    return ApiResponse(
        data=[SessionResponse.model_validate(state) for state in service.list_sessions()]
    )


@router.get("/{session_id}", response_model=ApiResponse[SessionResponse])
def get_session(session_id: SessionId, service: Service) -> ApiResponse[SessionResponse]:
    return ApiResponse(data=SessionResponse.model_validate(service.get_session(session_id)))


@router.get(
    "/{session_id}/qr",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}, "description": "QR code image"}},
)
def get_qr_code(session_id: SessionId, service: Service) -> Response:
    """Render the pending QR payload as a PNG to scan with the phone app."""
    state = service.get_session(session_id)
    if not state.qr_code:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="QR code not available for this session",
        )
    return Response(
        content=render_qr_png(state.qr_code),
        media_type="image/png",
        headers={"Cache-Control": "no-store"},
    )


@router.post("/{session_id}/logout", response_model=ApiResponse[None])
async def logout_session(session_id: SessionId, service: Service) -> ApiResponse[None]:
    """Unlink the device and delete the session's stored authentication data."""
    await service.logout(session_id)
    return ApiResponse(message="Session logged out successfully")


@router.delete("/{session_id}", response_model=ApiResponse[None])
async def destroy_session(session_id: SessionId, service: Service) -> ApiResponse[None]:
    await service.destroy_session(session_id)
    return ApiResponse(message="Session destroyed successfully")
