"""
Webhook Payload Extractors

Z-API payloads differ by message type and are not strictly schematized.
Instead of probing nested properties ad hoc, each concern is an ordered
list of small extractor functions tried in priority order; the first one
that yields a usable value wins.

    PHONE_EXTRACTORS  -> raw candidates, first with 10-13 digits is normalized
    BODY_LOCATIONS    -> where to search for text, recursively (depth <= 3)
"""
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.shared.utils.exceptions import PhoneNotFoundError
from app.shared.utils.json_utils import parse_json_object
from app.shared.utils.phone_utils import digits_only, normalize_phone

PhoneExtractor = Callable[[Dict[str, Any]], Iterable[Any]]
BodyLocation = Callable[[Dict[str, Any]], Any]

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 13

TEXT_KEYS = ("message", "text", "body", "caption", "conversation")
MAX_TEXT_DEPTH = 3

MEDIA_KINDS = ("image", "audio", "video", "document", "sticker")

_EMBEDDED_TEXT = re.compile(r'"(?:message|text)"\s*:\s*"((?:[^"\\]|\\.)*)"')


def _nested_message(payload: Dict[str, Any]) -> Dict[str, Any]:
    message = payload.get("message")
    return message if isinstance(message, dict) else {}


def _strip_jid(value: Any) -> Any:
    if isinstance(value, str) and "@" in value:
        return value.split("@", 1)[0]
    return value


# ============================================
# PHONE
# ============================================

def _direct_phone(payload: Dict[str, Any]) -> Iterable[Any]:
    yield payload.get("phone")


def _sender(payload: Dict[str, Any]) -> Iterable[Any]:
    yield _strip_jid(payload.get("from"))
    yield _strip_jid(payload.get("sender"))


def _chat_id(payload: Dict[str, Any]) -> Iterable[Any]:
    yield _strip_jid(payload.get("chatId"))
    yield _strip_jid(payload.get("remoteJid"))


def _nested_message_phone(payload: Dict[str, Any]) -> Iterable[Any]:
    message = _nested_message(payload)
    for key in ("phone", "from", "sender", "chatId", "remoteJid"):
        yield _strip_jid(message.get(key))


PHONE_EXTRACTORS: List[PhoneExtractor] = [
    _direct_phone,
    _sender,
    _chat_id,
    _nested_message_phone,
]


def is_plausible_phone(value: Any) -> bool:
    if value is None or isinstance(value, (dict, list, bool)):
        return False
    return MIN_PHONE_DIGITS <= len(digits_only(value)) <= MAX_PHONE_DIGITS


def extract_phone(payload: Dict[str, Any]) -> str:
    """
    First plausible phone in priority order, normalized.

    Raises:
        PhoneNotFoundError: no candidate has 10-13 digits.
    """
    for extractor in PHONE_EXTRACTORS:
        for candidate in extractor(payload):
            if is_plausible_phone(candidate):
                return normalize_phone(candidate)
    raise PhoneNotFoundError("No sender phone found in webhook payload")


# ============================================
# BODY
# ============================================

def _find_text(node: Any, depth: int = 0) -> Optional[str]:
    """Depth-bounded search through the known text-bearing keys."""
    if isinstance(node, str):
        return node if node.strip() else None
    if depth >= MAX_TEXT_DEPTH or not isinstance(node, dict):
        return None
    for key in TEXT_KEYS:
        if key in node:
            found = _find_text(node[key], depth + 1)
            if found:
                return found
    return None


BODY_LOCATIONS: List[BodyLocation] = [
    lambda p: _nested_message(p).get("body"),
    lambda p: _nested_message(p).get("text"),
    lambda p: p.get("body"),
    lambda p: p.get("text"),
    lambda p: p.get("message"),
    lambda p: p,
]


def _unwrap(text: str) -> str:
    """Undo the ways providers smuggle text inside text."""
    stripped = text.strip()

    if stripped.startswith("{"):
        parsed = parse_json_object(stripped)
        if parsed is not None:
            for key in ("message", "text"):
                value = parsed.get(key)
                if isinstance(value, str) and value.strip():
                    return value

    match = _EMBEDDED_TEXT.search(stripped)
    if match:
        return match.group(1).replace('\\"', '"')

    return text


def extract_body(payload: Dict[str, Any]) -> Optional[str]:
    """
    Message text, or None for notifications without text.
    Literal "\\n" sequences become real newlines.
    """
    for location in BODY_LOCATIONS:
        found = _find_text(location(payload))
        if found:
            body = _unwrap(found).replace("\\n", "\n").strip()
            if body:
                return body
    return None


# ============================================
# MEDIA
# ============================================

def extract_media(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Media descriptor for image/audio/video/document/sticker messages."""
    for kind in MEDIA_KINDS:
        node = payload.get(kind)
        if not isinstance(node, dict):
            continue
        descriptor = {
            "type": kind,
            "url": node.get(f"{kind}Url") or node.get("url"),
            "mime_type": node.get("mimeType"),
            "caption": node.get("caption"),
            "file_name": node.get("fileName"),
            "thumbnail_url": node.get("thumbnailUrl"),
        }
        return {k: v for k, v in descriptor.items() if v}
    return None


# ============================================
# METADATA
# ============================================

def extract_provider_message_id(payload: Dict[str, Any]) -> Optional[str]:
    for candidate in (payload.get("messageId"), payload.get("id"), _nested_message(payload).get("id")):
        if isinstance(candidate, (str, int)) and str(candidate).strip():
            return str(candidate).strip()
    return None


def extract_sender_name(payload: Dict[str, Any]) -> Optional[str]:
    for key in ("senderName", "pushName", "chatName"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_sender_photo(payload: Dict[str, Any]) -> Optional[str]:
    for key in ("senderPhoto", "photo"):
        value = payload.get(key)
        if isinstance(value, str) and value.startswith("http"):
            return value
    return None


def is_from_me(payload: Dict[str, Any]) -> bool:
    return payload.get("fromMe") is True


def extract_status_ids(payload: Dict[str, Any]) -> List[str]:
    """Provider message ids referenced by a status callback."""
    ids = payload.get("ids")
    if isinstance(ids, list):
        return [str(i) for i in ids if i]
    single = extract_provider_message_id(payload)
    return [single] if single else []
