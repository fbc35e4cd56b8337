"""
Turn a WhatsApp screenshot into an attributed transcript:
Azure OCR for the text, bubble colour for who sent each line.
"""
import logging

from app.services import azure_vision
from app.services.bubble_detection import classify_messages_by_visual_cues
from app.utils.chat_parsing import is_whatsapp_ui_text

logger = logging.getLogger(__name__)

POSITION_CONFIDENCE = 0.7


def parse_screenshot(image_bytes: bytes, me_name: str = "Me", them_name: str = "Them") -> dict:
    """
    Returns {"messages", "conversation", "image_width", "detection_method"}.
    Messages are ordered top to bottom. Raises AzureVisionError if OCR fails.
    """
    ocr = azure_vision.read_image_lines(image_bytes)
    width = ocr["width"]
    lines = [line for line in ocr["lines"] if not is_whatsapp_ui_text(line["text"])]

    classifications = classify_messages_by_visual_cues(
        image_bytes,
        [{"text": line["text"], "x": line["x"], "y": line["y"]} for line in lines]
    )

    messages = []
    if classifications:
        detection_method = "bubble_color"
        for item in classifications:
            is_me = item["is_green_bubble"]
            messages.append({
                "text": item["text"],
                "speaker": me_name if is_me else them_name,
                "is_me": is_me,
                "x": item["x"],
                "y": item["y"],
                "confidence": item["confidence"],
            })
    else:
        # Sent bubbles sit on the right half of the screen
        detection_method = "position"
        logger.warning("Bubble detection returned nothing, attributing %s lines by position", len(lines))
        for line in lines:
            is_me = line["x"] > width / 2
            messages.append({
                "text": line["text"],
                "speaker": me_name if is_me else them_name,
                "is_me": is_me,
                "x": line["x"],
                "y": line["y"],
                "confidence": POSITION_CONFIDENCE,
            })

    messages.sort(key=lambda message: message["y"])
    conversation = "\n".join(f"{m['speaker']}: {m['text']}" for m in messages)
    return {
        "messages": messages,
        "conversation": conversation,
        "image_width": width,
        "detection_method": detection_method,
    }
