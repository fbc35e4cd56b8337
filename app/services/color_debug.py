"""
Colour sampling used to debug bubble misclassification on screenshots.
"""
import io
import logging

from PIL import Image

logger = logging.getLogger(__name__)

MAX_SAMPLE_PIXELS = 10


def classify_color(r: int, g: int, b: int) -> str:
    if g > 120 and g > r + 20 and g > b + 10:
        return "bright-green"
    if g > 80 and g > r + 10 and g > b + 5:
        return "medium-green"
    if r < 80 and g < 80 and b < 80:
        return "dark"
    if r > 150 and g > 150 and b > 150:
        return "light"
    return "other"


def sample_area_colors(image: Image.Image, center_x: float, center_y: float, radius: int = 30) -> dict:
    """
    Sample every second pixel in a square around a point.

    Returns avg_r/avg_g/avg_b (rounded), the colour classes seen, the number of
    pixels sampled and the first few sample pixels.
    """
    image = image.convert("RGB")
    width, height = image.size
    pixels = image.load()
    x = int(center_x)
    y = int(center_y)

    total_r = total_g = total_b = 0
    count = 0
    color_types = []
    samples = []

    for sample_y in range(max(0, y - radius), min(height, y + radius), 2):
        for sample_x in range(max(0, x - radius), min(width, x + radius), 2):
            r, g, b = pixels[sample_x, sample_y]
            total_r += r
            total_g += g
            total_b += b
            count += 1

            color_type = classify_color(r, g, b)
            if color_type not in color_types:
                color_types.append(color_type)
            if len(samples) < MAX_SAMPLE_PIXELS:
                samples.append({"x": sample_x, "y": sample_y, "r": r, "g": g, "b": b, "type": color_type})

    if count == 0:
        return {"avg_r": 0, "avg_g": 0, "avg_b": 0, "color_types": [], "pixel_count": 0, "samples": []}

    return {
        "avg_r": round(total_r / count),
        "avg_g": round(total_g / count),
        "avg_b": round(total_b / count),
        "color_types": color_types,
        "pixel_count": count,
        "samples": samples,
    }


def debug_colors_at_points(image_bytes: bytes, points: list[dict], radius: int = 30) -> list[dict]:
    """Sample colours around each {"x", "y"} point of an encoded image."""
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    width, height = image.size
    results = []
    for point in points:
        if not (0 <= point["x"] < width and 0 <= point["y"] < height):
            continue
        colors = sample_area_colors(image, point["x"], point["y"], radius)
        logger.info(
            "Colour sample at (%s, %s): rgb(%s, %s, %s) types=%s",
            point["x"], point["y"], colors["avg_r"], colors["avg_g"], colors["avg_b"], colors["color_types"]
        )
        results.append({"x": point["x"], "y": point["y"], "label": point.get("label"), **colors})
    return results
