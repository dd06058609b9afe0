from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional

from ..common.datetime_utils import from_unix_seconds, now_utc
from ..common.validators import require_coordinate, require_float
from ..core.enums import PrecisionHint
from ..core.exceptions import InputError
from ..geo.distance import Coordinate
from .exif import capture_time, extract_coordinate, read_photo_tags
from .model import Evidence, InboundMessage, MediaPayload

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,", re.IGNORECASE)


class EvidenceIngestor:
    """The only place that knows the messaging transport's payload shapes.

    ``parse_webhook`` turns a webhook body into InboundMessages;
    ``to_evidence`` turns a location share or a photo into Evidence.
    """

    def __init__(self, *, clock: Callable[[], datetime] = now_utc):
        self._clock = clock

    # ---- webhook envelope -------------------------------------------------

    def parse_webhook(self, payload: Mapping[str, Any]) -> List[InboundMessage]:
        if not isinstance(payload, Mapping):
            raise InputError("Webhook body must be a JSON object")

        envelope = payload.get("originalPayload") if isinstance(payload.get("originalPayload"), Mapping) else payload
        if isinstance(envelope.get("entry"), list):
            messages: List[InboundMessage] = []
            for entry in envelope["entry"]:
                if not isinstance(entry, Mapping):
                    logger.warning("Skipping malformed webhook entry: %r", entry)
                    continue
                for change in _list(entry.get("changes")):
                    value = _mapping(change.get("value")) if isinstance(change, Mapping) else {}
                    for raw in _list(value.get("messages")):
                        parsed = self._parse_business_message(raw)
                        if parsed:
                            messages.append(parsed)
            return messages

        if payload.get("type") == "message":
            parsed = self._parse_legacy_message(payload)
            return [parsed] if parsed else []

        if payload.get("type") == "button_reply":
            parsed = self._parse_legacy_button(payload)
            return [parsed] if parsed else []

        # Status callbacks and anything else carry nothing to answer.
        return []

    def _parse_business_message(self, raw: Mapping[str, Any]) -> Optional[InboundMessage]:
        if not isinstance(raw, Mapping) or not raw.get("id") or not raw.get("from"):
            logger.warning("Skipping malformed webhook message: %r", raw)
            return None

        message_type = str(raw.get("type") or "unknown")
        text = None
        location = None
        media = None
        button_payload = None

        if message_type == "text":
            body = raw.get("text")
            text = body if isinstance(body, str) else _mapping(body).get("body")
        elif message_type == "location":
            location = raw.get("location")
        elif message_type in ("image", "document"):
            body = _mapping(raw.get(message_type))
            processed = _mapping(raw.get("processedMedia"))
            media = MediaPayload(
                mime_type=body.get("mime_type") or processed.get("contentType"),
                filename=body.get("filename"),
                media_id=body.get("id"),
                sha256=body.get("sha256"),
                base64_data=processed.get("base64Data") or processed.get("dataUrl"),
                metadata=_mapping(processed.get("metadata")),
            )
            if message_type == "image" and not media.mime_type:
                media = replace(media, mime_type="image/jpeg")
        elif message_type == "interactive":
            reply = _mapping(_mapping(raw.get("interactive")).get("button_reply"))
            message_type, button_payload, text = "button_reply", reply.get("id"), reply.get("title")
        elif message_type == "button":
            button = _mapping(raw.get("button"))
            message_type, button_payload, text = "button_reply", button.get("payload"), button.get("text")

        return InboundMessage(
            message_id=str(raw["id"]),
            sender=str(raw["from"]),
            message_type=message_type,
            raw_timestamp=raw.get("timestamp"),
            text=text,
            location=location,
            media=media,
            button_payload=button_payload,
        )

    def _parse_legacy_message(self, raw: Mapping[str, Any]) -> Optional[InboundMessage]:
        if not raw.get("messageId") or not raw.get("from"):
            logger.warning("Skipping malformed legacy message: %r", raw)
            return None

        content = _mapping(raw.get("content"))
        message_type = str(raw.get("messageType") or "unknown")
        if message_type == "text" and raw.get("location"):
            message_type = "location"

        media = None
        if message_type in ("image", "document"):
            media = MediaPayload(
                mime_type=content.get("mimeType") or content.get("contentType")
                or ("image/jpeg" if message_type == "image" else None),
                filename=content.get("filename"),
                media_id=content.get("mediaId"),
                sha256=content.get("sha256"),
                base64_data=content.get("base64Data") or content.get("dataUrl"),
                metadata=_mapping(content.get("metadata")),
            )

        return InboundMessage(
            message_id=str(raw["messageId"]),
            sender=str(raw["from"]),
            message_type=message_type,
            raw_timestamp=raw.get("timestamp"),
            text=content.get("text"),
            location=raw.get("location"),
            media=media,
        )

    def _parse_legacy_button(self, raw: Mapping[str, Any]) -> Optional[InboundMessage]:
        if not raw.get("messageId") or not raw.get("from"):
            logger.warning("Skipping malformed button reply: %r", raw)
            return None
        context = _mapping(raw.get("context"))
        return InboundMessage(
            message_id=str(raw["messageId"]),
            sender=str(raw["from"]),
            message_type="button_reply",
            raw_timestamp=raw.get("timestamp"),
            text=context.get("buttonText"),
            button_payload=context.get("buttonPayload"),
        )

    # ---- evidence -----------------------------------------------------------

    def to_evidence(self, message: InboundMessage) -> Optional[Evidence]:
        """Evidence for location shares and photos; None for anything else."""
        if message.message_type == "location":
            return self.from_location(message)
        if message.carries_photo:
            return self.from_photo(message)
        return None

    def from_location(self, message: InboundMessage) -> Evidence:
        location = message.location or {}
        if not isinstance(location, Mapping):
            raise InputError("Location must be an object")
        if "latitude" not in location or "longitude" not in location:
            raise InputError("Location message without coordinates")
        lat, lon = require_coordinate(location.get("latitude"), location.get("longitude"))

        accuracy = None
        if location.get("accuracy") is not None:
            accuracy = require_float(location.get("accuracy"), "accuracy")

        return Evidence(
            source_message_id=message.message_id,
            timestamp=self._timestamp(message),
            precision_hint=PrecisionHint.DEVICE,
            coordinate=Coordinate(lat, lon).normalized(),
            accuracy_m=accuracy,
        )

    def from_photo(self, message: InboundMessage) -> Evidence:
        media = message.media or MediaPayload()
        sources: List[Mapping[str, Any]] = []
        if media.metadata:
            sources.append(media.metadata)
        if media.base64_data:
            try:
                sources.append(read_photo_tags(_decode_base64(media.base64_data)))
            except InputError as e:
                # Unreadable bytes only fail the photo when nothing else describes it.
                if not sources:
                    raise
                logger.warning("Ignoring unreadable image in %s, using processor metadata: %s", message.message_id, e)

        coordinate = extract_coordinate(sources)
        if coordinate is None:
            logger.info("Photo %s carries no GPS location", message.message_id)

        return Evidence(
            source_message_id=message.message_id,
            timestamp=self._timestamp(message),
            precision_hint=PrecisionHint.PHOTO_EXIF,
            coordinate=coordinate.normalized() if coordinate else None,
            captured_at=capture_time(sources),
        )

    def _timestamp(self, message: InboundMessage) -> datetime:
        raw = message.raw_timestamp
        if raw is None or raw == "":
            return self._clock()
        if isinstance(raw, datetime):
            return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
        if isinstance(raw, str) and not re.fullmatch(r"\s*\d+(\.\d+)?\s*", raw):
            try:
                parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
            except ValueError:
                raise InputError(f"Invalid message timestamp: {raw!r}")
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return from_unix_seconds(raw)


def _decode_base64(data: str) -> bytes:
    cleaned = _DATA_URL_PREFIX.sub("", data.strip())
    try:
        return base64.b64decode(cleaned, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InputError(f"Photo data is not valid base64: {e}") from e



def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []
