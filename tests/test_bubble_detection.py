import io

from PIL import Image

from app.services.bubble_detection import (
    GREEN_CONFIDENCE,
    GRAY_CONFIDENCE,
    analyze_area_around_text,
    classify_messages_by_visual_cues,
    is_dark_bubble,
    is_whatsapp_green,
)

WHATSAPP_GREEN = (37, 211, 102)
DARK_GRAY = (32, 44, 51)
LIGHT_GRAY = (200, 200, 200)


def _png_bytes(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _screenshot():
    """400x400 dark-mode screenshot: a green bubble top right, a gray bubble bottom left."""
    image = Image.new("RGB", (400, 400), (0, 0, 0))
    image.paste(WHATSAPP_GREEN, (220, 50, 380, 150))
    image.paste(DARK_GRAY, (20, 200, 180, 300))
    return image


def test_colour_predicates():
    assert is_whatsapp_green(*WHATSAPP_GREEN)
    assert not is_whatsapp_green(*DARK_GRAY)
    assert not is_whatsapp_green(*LIGHT_GRAY)
    assert is_dark_bubble(*DARK_GRAY)
    assert not is_dark_bubble(0, 0, 0)


def test_green_bubble_is_sent_and_gray_is_received():
    image = _screenshot()

    assert analyze_area_around_text(image, 300, 100) is True
    assert analyze_area_around_text(image, 100, 250) is False


def test_sparse_area_falls_back_to_position():
    image = _screenshot()

    # Only black background around these points
    assert analyze_area_around_text(image, 350, 350) is True
    assert analyze_area_around_text(image, 50, 380) is False


def test_green_ratio_threshold_is_inclusive():
    # Samples at x, y in 0, 3, ..., 27 give exactly 100 relevant pixels
    image = Image.new("RGB", (30, 30), LIGHT_GRAY)
    for i in range(8):
        image.putpixel((i * 3, 0), WHATSAPP_GREEN)
    assert analyze_area_around_text(image, 0, 0) is True

    image.putpixel((21, 0), LIGHT_GRAY)
    assert analyze_area_around_text(image, 0, 0) is False


def test_classify_messages_keeps_input_order():
    items = [
        {"text": "hey you up?", "x": 100, "y": 250},
        {"text": "yes, just got home", "x": 300, "y": 100},
    ]

    results = classify_messages_by_visual_cues(_png_bytes(_screenshot()), items)

    assert [r["text"] for r in results] == ["hey you up?", "yes, just got home"]
    assert results[0]["is_green_bubble"] is False
    assert results[0]["confidence"] == GRAY_CONFIDENCE
    assert results[1]["is_green_bubble"] is True
    assert results[1]["confidence"] == GREEN_CONFIDENCE


def test_unreadable_image_returns_empty_list():
    assert classify_messages_by_visual_cues(b"not an image", [{"text": "hi", "x": 1, "y": 1}]) == []
