"""
Azure Computer Vision Read API client for WhatsApp screenshots.
Submits the image, polls the operation until it finishes, and returns text lines
with their centre coordinates so bubbles can be attributed to speakers.
"""
import base64
import logging
import re
import time

import requests

from app.core.config import AZURE_VISION_ENDPOINT, AZURE_VISION_KEY

logger = logging.getLogger(__name__)

READ_API_PATH = "/vision/v3.2/read/analyze"
POLL_INTERVAL_SECONDS = 1
MAX_POLL_ATTEMPTS = 30
REQUEST_TIMEOUT = 15
DEFAULT_IMAGE_WIDTH = 1080  # Typical phone screenshot width

_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


class AzureVisionError(Exception):
    """Raised when the Read API is not configured or the analysis fails."""


def is_configured() -> bool:
    return bool(AZURE_VISION_ENDPOINT and AZURE_VISION_KEY)


def decode_base64_image(image: str) -> bytes:
    """Decode a base64 image, with or without a data: URL prefix."""
    cleaned = _DATA_URL_PREFIX_RE.sub("", (image or "").strip())
    try:
        return base64.b64decode(cleaned, validate=False)
    except (ValueError, TypeError) as e:
        raise ValueError("Invalid base64 image data") from e


def _line_center(bounding_box: list) -> tuple[float, float]:
    # boundingBox is [x1, y1, x2, y2, x3, y3, x4, y4], clockwise from top-left
    xs = bounding_box[0::2]
    ys = bounding_box[1::2]
    return sum(xs) / len(xs), sum(ys) / len(ys)


def read_image_lines(image_bytes: bytes) -> dict:
    """
    Run the Read API on an image.

    Returns {"lines": [{"text", "x", "y", "left"}], "width", "height", "raw_text"}.
    """
    if not is_configured():
        raise AzureVisionError("Azure Vision credentials not configured")

    headers = {"Ocp-Apim-Subscription-Key": AZURE_VISION_KEY}
    try:
        submit = requests.post(
            f"{AZURE_VISION_ENDPOINT}{READ_API_PATH}",
            headers={**headers, "Content-Type": "application/octet-stream"},
            data=image_bytes,
            timeout=REQUEST_TIMEOUT,
        )
        submit.raise_for_status()
        operation_location = submit.headers.get("Operation-Location")
        if not operation_location:
            raise AzureVisionError("No operation location returned from Azure")

        logger.info("Polling Azure for OCR results...")
        result = None
        for attempt in range(MAX_POLL_ATTEMPTS):
            time.sleep(POLL_INTERVAL_SECONDS)
            poll = requests.get(operation_location, headers=headers, timeout=REQUEST_TIMEOUT)
            poll.raise_for_status()
            data = poll.json()
            status = data.get("status")
            if status == "succeeded":
                result = data
                break
            if status == "failed":
                raise AzureVisionError("Azure OCR analysis failed")
        if result is None:
            raise AzureVisionError("Azure OCR processing timed out")
    except requests.exceptions.RequestException as e:
        logger.error("Azure Vision request error: %s", e)
        raise AzureVisionError(f"Azure Vision analysis failed: {e}") from e

    read_results = (result.get("analyzeResult") or {}).get("readResults") or []
    page = read_results[0] if read_results else {}
    width = page.get("width") or DEFAULT_IMAGE_WIDTH
    height = page.get("height") or 0

    lines = []
    for line in page.get("lines", []):
        text = (line.get("text") or "").strip()
        box = line.get("boundingBox") or []
        if not text or len(box) < 8:
            continue
        x, y = _line_center(box)
        lines.append({"text": text, "x": x, "y": y, "left": box[0]})

    logger.info("Azure Vision OCR completed: %s lines", len(lines))
    return {
        "lines": lines,
        "width": width,
        "height": height,
        "raw_text": "\n".join(line["text"] for line in lines),
    }
