"""
Parsing and validation for pasted or exported chat transcripts (mostly WhatsApp).
"""
import io
import logging
import re
import zipfile
from datetime import date, datetime
from typing import Optional

logger = logging.getLogger(__name__)

MIN_LINES = 3
MIN_DIALOGUE_LINES = 2
MIN_AVERAGE_MESSAGE_LENGTH = 10
MAX_AVERAGE_MESSAGE_LENGTH = 1000

ENCRYPTION_NOTICE = "Messages and calls are end-to-end encrypted"

WHATSAPP_LINE_PATTERNS = [
    re.compile(r"\d{1,2}/\d{1,2}/\d{2,4},?\s*\d{1,2}:\d{2}(\s*(AM|PM))?\s*-\s*.+:\s*.+", re.I),
    re.compile(r"\[\d{1,2}/\d{1,2}/\d{2,4},?\s*\d{1,2}:\d{2}(:\d{2})?(\s*(AM|PM))?\]\s*.+:\s*.+", re.I),
    re.compile(r"\d{1,2}:\d{2}(\s*(AM|PM))?\s*-\s*.+:\s*.+", re.I),
    re.compile(r"\d{1,2}[./\-]\d{1,2}[./\-]\d{2,4},?\s*\d{1,2}:\d{2}.*-.*:\s*.+", re.I),
    re.compile(r"^[^:\[(]*:\s*.+"),
    re.compile(r"\s*-\s*.+:\s*.+"),
]

# Speaker prefixes: "[date, time] Name: text", "date, time - Name: text", "Name: text"
_BRACKETED_LINE_RE = re.compile(r"^\s*\[[^\]]*\]\s*([^:]+?):\s*(.*)$")
_DASHED_LINE_RE = re.compile(
    r"^\s*\d{1,4}[./\-]\d{1,2}[./\-]\d{1,4},?\s*\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AaPp][Mm])?\s*-\s*([^:]+?):\s*(.*)$"
)
_PLAIN_LINE_RE = re.compile(r"^\s*([^:\[\]]{1,50}?):\s*(.*)$")

_DATE_PATTERNS = [
    re.compile(r"^\[?(\d{1,2})/(\d{1,2})/(\d{4}),?\s+"),  # DD/MM/YYYY or MM/DD/YYYY
    re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})\s+"),  # YYYY-MM-DD
]

WHATSAPP_UI_PATTERNS = [
    re.compile(r"^last seen", re.I),
    re.compile(r"^online$", re.I),
    re.compile(r"^typing\.\.\.$", re.I),
    re.compile(r"^type a message$", re.I),
    re.compile(r"^\d{1,2}:\d{2}(\s*[AaPp][Mm])?$"),
    re.compile(r"^today$", re.I),
    re.compile(r"^yesterday$", re.I),
    re.compile(r"^(delivered|read|sent)$", re.I),
    re.compile(r"^whatsapp$", re.I),
    re.compile(r"^(camera|microphone|gallery|document|contact|location)$", re.I),
    re.compile(r"end-to-end encrypted", re.I),
]


def _non_empty_lines(text: str) -> list[str]:
    return [line for line in (text or "").split("\n") if line.strip()]


def parse_message_line(line: str) -> Optional[tuple[str, str]]:
    """Split a transcript line into (speaker, message), or None for non-dialogue lines."""
    for pattern in (_BRACKETED_LINE_RE, _DASHED_LINE_RE, _PLAIN_LINE_RE):
        match = pattern.match(line)
        if match:
            speaker = match.group(1).strip()
            message = match.group(2).strip()
            if speaker and message:
                return speaker, message
            return None
    return None


def validate_conversation(text: str) -> Optional[str]:
    """
    Check that text looks like a conversation worth analyzing.
    Returns an error message, or None when valid.
    """
    lines = _non_empty_lines(text)
    if len(lines) < MIN_LINES:
        return "Please provide a longer conversation (at least 3 lines)."

    dialogue_lines = [line for line in lines if ":" in line]
    if len(dialogue_lines) < MIN_DIALOGUE_LINES:
        return "The conversation should include speaker names followed by a colon (e.g. 'Alex: Hi')."

    lengths = []
    for line in dialogue_lines:
        parsed = parse_message_line(line)
        message = parsed[1] if parsed else line.split(":", 1)[1].strip()
        lengths.append(len(message))
    average = sum(lengths) / len(lengths)
    if average < MIN_AVERAGE_MESSAGE_LENGTH:
        return "Messages are too short to analyze. Please include more of the conversation."
    if average > MAX_AVERAGE_MESSAGE_LENGTH:
        return "Messages are unusually long. Please paste the conversation as individual messages."
    return None


def is_valid_whatsapp_format(text: str) -> bool:
    """True if at least 30% of the first 20 lines look like WhatsApp export lines."""
    if not text or len(text.strip()) < 20:
        return False
    lines = _non_empty_lines(text)
    if len(lines) < MIN_LINES:
        return False

    checked = lines[:20]
    valid = sum(1 for line in checked if any(p.search(line) for p in WHATSAPP_LINE_PATTERNS))
    ratio = valid / len(checked)
    logger.info("WhatsApp validation: %s/%s lines valid (%.1f%%)", valid, len(checked), ratio * 100)
    return ratio >= 0.3


def _parse_line_date(line: str, today: date) -> Optional[date]:
    for pattern in _DATE_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        a, b, c = (int(part) for part in match.groups())
        if a > 999:
            candidates = [(a, b, c)]  # YYYY-MM-DD
        else:
            candidates = [(c, b, a), (c, a, b)]  # DD/MM/YYYY then MM/DD/YYYY
        for year, month, day in candidates:
            try:
                parsed = date(year, month, day)
            except ValueError:
                continue
            if parsed <= today and parsed.year > 2000:
                return parsed
        return None
    return None


def _months_before(today: date, months: int) -> date:
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(today.day, 28)
    return date(year, month, day)


def filter_recent_messages(text: str, months_back: int = 3, today: Optional[date] = None) -> str:
    """
    Keep only messages from the last `months_back` months.

    Undated lines are kept (headers and continuations of kept messages).
    When fewer than 10 messages survive the window is doubled, up to 12 months.
    """
    today = today or datetime.utcnow().date()
    cutoff = _months_before(today, months_back)
    lines = text.split("\n")

    kept = []
    skipping = False
    for line in lines:
        if not line.strip() or ENCRYPTION_NOTICE in line:
            kept.append(line)
            continue
        line_date = _parse_line_date(line, today)
        if line_date is None:
            # Continuation of the previous message follows its fate
            if not skipping:
                kept.append(line)
            continue
        if line_date >= cutoff:
            skipping = False
            kept.append(line)
        else:
            skipping = True

    message_count = sum(1 for line in kept if ":" in line and ENCRYPTION_NOTICE not in line)
    if message_count < 10 and months_back < 12:
        logger.info("Too few recent messages (%s), expanding to %s months", message_count, months_back * 2)
        return filter_recent_messages(text, months_back * 2, today)

    logger.info("Date filtering: %s lines kept of %s (last %s months)", len(kept), len(lines), months_back)
    return "\n".join(kept)


def extract_speakers(text: str) -> list[str]:
    """Unique speaker names in order of first appearance."""
    speakers = []
    for line in _non_empty_lines(text):
        parsed = parse_message_line(line)
        if not parsed:
            continue
        speaker = parsed[0]
        if "joined" in speaker or "left" in speaker:
            continue
        if speaker not in speakers:
            speakers.append(speaker)
    return speakers


def extract_chat_text_from_upload(filename: str, data: bytes) -> str:
    """
    Read chat text from an uploaded WhatsApp export.
    .txt files are decoded as UTF-8; .zip archives use their first .txt member.
    """
    name = (filename or "").lower()
    if name.endswith(".txt"):
        return data.decode("utf-8", errors="replace")
    if name.endswith(".zip"):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                members = [
                    info for info in archive.infolist()
                    if not info.is_dir() and info.filename.lower().endswith(".txt")
                ]
                if not members:
                    raise ValueError("No .txt files found in ZIP archive")
                return archive.read(members[0]).decode("utf-8", errors="replace")
        except zipfile.BadZipFile as e:
            raise ValueError("Invalid ZIP archive") from e
    raise ValueError("Unsupported file type")


def is_whatsapp_ui_text(text: str) -> bool:
    """True for OCR text that is WhatsApp chrome rather than a message."""
    text = (text or "").strip()
    if not text:
        return True
    return any(pattern.search(text) for pattern in WHATSAPP_UI_PATTERNS)
