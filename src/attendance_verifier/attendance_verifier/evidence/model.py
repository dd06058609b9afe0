from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from ..core.enums import PrecisionHint
from ..geo.distance import Coordinate


@dataclass(frozen=True)
class Evidence:
    """One timestamped location observation tied to a source message.

    ``coordinate`` is None for "no-location" evidence (a photo without usable
    GPS tags); such evidence is kept on the record but never resolved.
    """

    source_message_id: str
    timestamp: datetime
    precision_hint: PrecisionHint
    coordinate: Optional[Coordinate] = None
    accuracy_m: Optional[float] = None
    captured_at: Optional[datetime] = None

    @property
    def has_location(self) -> bool:
        return self.coordinate is not None


@dataclass(frozen=True)
class MediaPayload:
    mime_type: Optional[str] = None
    filename: Optional[str] = None
    media_id: Optional[str] = None
    sha256: Optional[str] = None
    base64_data: Optional[str] = None
    # Tags a media processor already pulled out of the file, if any.
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_image(self) -> bool:
        return bool(self.mime_type) and str(self.mime_type).lower().startswith("image/")


@dataclass(frozen=True)
class InboundMessage:
    """Transport-neutral view of one inbound chat message."""

    message_id: str
    sender: str
    message_type: str
    raw_timestamp: Any = None
    text: Optional[str] = None
    location: Optional[Mapping[str, Any]] = None
    media: Optional[MediaPayload] = None
    # Set for quick-reply button presses, e.g. "check_status".
    button_payload: Optional[str] = None

    @property
    def carries_photo(self) -> bool:
        if self.message_type == "image":
            return True
        return self.message_type == "document" and self.media is not None and self.media.is_image
