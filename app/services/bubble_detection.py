"""
WhatsApp screenshot bubble classifier.
Attributes OCR text to a speaker by sampling the pixels around each text item:
green bubbles are messages sent by the screenshot owner, gray/dark bubbles are received.
"""
import io
import logging
from typing import Iterable

from PIL import Image

logger = logging.getLogger(__name__)

SEARCH_RADIUS = 60
SAMPLE_STEP = 3
MIN_RELEVANT_PIXELS = 20
GREEN_RATIO_THRESHOLD = 0.08
POSITION_FALLBACK_RATIO = 0.6  # Right of this fraction of the width counts as sent
GREEN_CONFIDENCE = 0.95
GRAY_CONFIDENCE = 0.90


def is_whatsapp_green(r: int, g: int, b: int) -> bool:
    # WhatsApp green is approximately RGB(37, 211, 102)
    return g > 150 and g > r * 1.8 and g > b * 1.5 and r < 120


def is_dark_bubble(r: int, g: int, b: int) -> bool:
    return 40 < r + g + b < 200


def analyze_area_around_text(image: Image.Image, text_x: float, text_y: float) -> bool:
    """
    Return True if the area around (text_x, text_y) looks like a green bubble.
    Falls back to horizontal position when too few non-background pixels are sampled.
    """
    width, height = image.size
    pixels = image.load()
    x = int(text_x)
    y = int(text_y)

    min_x = max(0, x - SEARCH_RADIUS)
    max_x = min(width - 1, x + SEARCH_RADIUS)
    min_y = max(0, y - SEARCH_RADIUS)
    max_y = min(height - 1, y + SEARCH_RADIUS)

    green_pixels = 0
    dark_pixels = 0
    relevant_pixels = 0

    for sample_y in range(min_y, max_y, SAMPLE_STEP):
        for sample_x in range(min_x, max_x, SAMPLE_STEP):
            r, g, b = pixels[sample_x, sample_y][:3]
            # Skip near-black background
            if r + g + b < 50:
                continue
            relevant_pixels += 1
            if is_whatsapp_green(r, g, b):
                green_pixels += 1
            elif is_dark_bubble(r, g, b):
                dark_pixels += 1

    if relevant_pixels < MIN_RELEVANT_PIXELS:
        return text_x > width * POSITION_FALLBACK_RATIO

    green_ratio = green_pixels / relevant_pixels
    dark_ratio = dark_pixels / relevant_pixels
    if green_ratio > 0.05 or dark_ratio > 0.1:
        logger.debug(
            "Area analysis at (%s, %s): green %.1f%%, dark %.1f%%, %s pixels",
            x, y, green_ratio * 100, dark_ratio * 100, relevant_pixels
        )
    return green_ratio >= GREEN_RATIO_THRESHOLD


def classify_messages_by_visual_cues(image_bytes: bytes, text_items: Iterable[dict]) -> list[dict]:
    """
    Classify each OCR text item ({"text", "x", "y"}) as a green (sent) or gray (received) bubble.

    Returns a list of {"text", "x", "y", "is_green_bubble", "confidence"} in input order,
    or an empty list if the image cannot be read.
    """
    try:
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        width, height = image.size
        logger.info("Analyzing screenshot bubbles: %sx%s", width, height)

        results = []
        for item in text_items:
            is_green = analyze_area_around_text(image, item["x"], item["y"])
            results.append({
                "text": item["text"],
                "x": item["x"],
                "y": item["y"],
                "is_green_bubble": is_green,
                "confidence": GREEN_CONFIDENCE if is_green else GRAY_CONFIDENCE,
            })

        green_count = sum(1 for r in results if r["is_green_bubble"])
        logger.info(
            "Bubble classification complete: %s green, %s gray",
            green_count, len(results) - green_count
        )
        return results
    except Exception as e:
        logger.error("Error in bubble detection: %s", e)
        return []
