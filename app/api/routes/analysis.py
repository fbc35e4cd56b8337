"""
Analysis routes: chat transcripts, single messages, vent mode and screenshot OCR.
Signed-in users are metered per month; anonymous callers get a small trial per device.
"""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Header, UploadFile, File, Form
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.dependencies.auth import get_optional_user, require_admin
from app.models.analysis import Analysis
from app.models.user import User
from app.models.user_event import UserEventType
from app.schemas.analysis import (
    ChatAnalysisRequest,
    MessageAnalysisRequest,
    VentRequest,
    DetectNamesRequest,
    ImageRequest,
    DebugColorsRequest,
    ParticipantsResponse,
    ScreenshotResponse,
)
from app.services import anthropic_service, azure_vision, chat_analysis
from app.services.anthropic_service import AnalysisServiceError
from app.services.analytics import track_user_event
from app.services.azure_vision import AzureVisionError
from app.services.color_debug import debug_colors_at_points
from app.services.screenshot_parser import parse_screenshot
from app.services.tier_filter import filter_message_analysis_by_tier, filter_vent_result_by_tier
from app.services.usage_tracker import (
    check_anonymous_trial,
    check_usage_limit,
    increment_anonymous_usage,
    increment_usage,
)
from app.utils.chat_parsing import (
    extract_chat_text_from_upload,
    filter_recent_messages,
    validate_conversation,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# WhatsApp exports with media stripped stay well under this
MAX_UPLOAD_SIZE = 10 * 1024 * 1024
ALLOWED_UPLOAD_SUFFIXES = {".txt", ".zip"}


def _require_caller(user: Optional[User], device_id: Optional[str], db: Session) -> str:
    """
    Check the caller may run a metered analysis and return the tier to analyze with.
    Anonymous callers must send X-Device-Id and are analyzed on the free tier.
    """
    if user:
        allowed, message = check_usage_limit(user, db)
        if not allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
        return user.tier

    if not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sign in or send an X-Device-Id header to use the free trial"
        )
    allowed, message = check_anonymous_trial(device_id, db)
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
    return "free"


def _record_analysis(
    db: Session,
    user: Optional[User],
    device_id: Optional[str],
    analysis_type: str,
    content: str,
    result: dict,
) -> None:
    """Persist the result for signed-in users and count it against the caller."""
    if user:
        db.add(Analysis(user_id=user.id, type=analysis_type, content=content, result=result))
        db.commit()
        increment_usage(user.id, db)
        track_user_event(db, user.id, UserEventType.ANALYSIS, new_value=analysis_type)
    elif device_id:
        increment_anonymous_usage(device_id, db)


def _analyze_conversation(conversation: str, me: str, them: str, tier: str) -> dict:
    error = validate_conversation(conversation)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    try:
        return chat_analysis.run_chat_analysis(conversation, me, them, tier)
    except AnalysisServiceError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.post("/chat")
def analyze_chat(
    request: ChatAnalysisRequest,
    x_device_id: Optional[str] = Header(None),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Analyze a chat transcript between `me` and `them`.
    The result is filtered to what the caller's tier includes.
    """
    tier = _require_caller(user, x_device_id, db)
    result = _analyze_conversation(request.conversation, request.me, request.them, tier)
    _record_analysis(db, user, x_device_id, "chat", request.conversation, result)
    return result


@router.post("/message")
def analyze_single_message(
    request: MessageAnalysisRequest,
    x_device_id: Optional[str] = Header(None),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    tier = _require_caller(user, x_device_id, db)
    try:
        analysis = anthropic_service.analyze_message(request.message, request.author, tier)
    except AnalysisServiceError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    result = filter_message_analysis_by_tier(analysis, tier)
    _record_analysis(db, user, x_device_id, "message", request.message, result)
    return result


@router.post("/de-escalate")
def de_escalate(
    request: VentRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Vent mode: rewrite a heated message calmly. Not counted against usage."""
    tier = user.tier if user else "free"
    try:
        result = anthropic_service.vent_message(request.message, tier)
    except AnalysisServiceError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    result = filter_vent_result_by_tier(result, tier)
    if user:
        db.add(Analysis(user_id=user.id, type="vent", content=request.message, result=result))
        db.commit()
    return result


@router.post("/detect-names", response_model=ParticipantsResponse)
def detect_names(request: DetectNamesRequest):
    return anthropic_service.detect_participants(request.conversation)


@router.post("/whatsapp-screenshot", response_model=ScreenshotResponse)
def analyze_whatsapp_screenshot(request: ImageRequest):
    """
    OCR a WhatsApp screenshot and attribute each line to a speaker by bubble colour.
    """
    if not azure_vision.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Screenshot analysis is not configured"
        )
    try:
        image_bytes = azure_vision.decode_base64_image(request.image)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        return parse_screenshot(image_bytes)
    except AzureVisionError as e:
        logger.error("Screenshot OCR failed: %s", e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/ocr")
def extract_text(request: ImageRequest):
    image = request.image
    if image.startswith("data:") and "," in image:
        image = image.split(",", 1)[1]
    try:
        text = anthropic_service.extract_text_from_image(image, request.media_type)
    except AnalysisServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"text": text}


@router.post("/import")
def import_chat_exports(
    files: List[UploadFile] = File(...),
    me: Optional[str] = Form(None),
    them: Optional[str] = Form(None),
    x_device_id: Optional[str] = Header(None),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Analyze one or more WhatsApp exports (.txt or .zip).
    Only the last few months of each chat are analyzed.
    A single file returns its analysis; several return {success, message, results}.
    """
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")

    # Every file is read and extracted before anything is analyzed or counted
    conversations = []
    for upload in files:
        filename = upload.filename or ""
        if Path(filename).suffix.lower() not in ALLOWED_UPLOAD_SUFFIXES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{filename or 'File'}: only .txt and .zip WhatsApp exports are supported"
            )
        data = upload.file.read()
        if len(data) > MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{filename}: file exceeds maximum size of 10MB"
            )
        try:
            conversations.append((filename, filter_recent_messages(extract_chat_text_from_upload(filename, data))))
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{filename}: {e}")

    results = []
    for filename, conversation in conversations:
        # Checked per file: each analysis counts against the caller's quota
        tier = _require_caller(user, x_device_id, db)

        participants = {"me": me, "them": them}
        if not me or not them:
            participants = anthropic_service.detect_participants(conversation)

        result = _analyze_conversation(conversation, participants["me"], participants["them"], tier)
        _record_analysis(db, user, x_device_id, "chat", conversation, result)
        results.append({"filename": filename, "analysis": result})

    if len(results) == 1:
        return results[0]["analysis"]
    return {
        "success": True,
        "message": f"Analyzed {len(results)} chat exports",
        "results": results,
    }


@router.post("/debug-colors")
def debug_colors(
    request: DebugColorsRequest,
    admin: User = Depends(require_admin)
):
    """Sample bubble colours around points of a screenshot (admin diagnostics)."""
    try:
        image_bytes = azure_vision.decode_base64_image(request.image)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    points = [point.model_dump() for point in request.points]
    try:
        samples = debug_colors_at_points(image_bytes, points, request.radius)
    except OSError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Could not read image: {e}")
    return {"points": samples}
