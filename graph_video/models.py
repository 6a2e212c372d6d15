from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Union


class UploadPhase(str, Enum):
    START = "start"
    TRANSFER = "transfer"
    FINISH = "finish"
    CANCEL = "cancel"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {UploadPhase.DONE, UploadPhase.CANCELLED, UploadPhase.FAILED}


class UploadMethod(str, Enum):
    RESUMABLE = "resumable"
    NON_RESUMABLE = "non_resumable"


class ContentCategory(str, Enum):
    """Video categories accepted by the Graph API video edge."""

    BEAUTY_FASHION = "BEAUTY_FASHION"
    BUSINESS = "BUSINESS"
    CARS_TRUCKS = "CARS_TRUCKS"
    COMEDY = "COMEDY"
    CUTE_ANIMALS = "CUTE_ANIMALS"
    ENTERTAINMENT = "ENTERTAINMENT"
    FAMILY = "FAMILY"
    FOOD_HEALTH = "FOOD_HEALTH"
    HOME = "HOME"
    LIFESTYLE = "LIFESTYLE"
    MUSIC = "MUSIC"
    NEWS = "NEWS"
    POLITICS = "POLITICS"
    SCIENCE = "SCIENCE"
    SPORTS = "SPORTS"
    TECHNOLOGY = "TECHNOLOGY"
    VIDEO_GAMING = "VIDEO_GAMING"
    OTHER = "OTHER"


@dataclass(frozen=True)
class VideoParams:
    """Metadata published together with a video.

    ``video_title`` and ``title`` do not show up in the page feed, use
    ``description`` for the text displayed above the post. ``thum`` is a
    thumbnail reference (BMP, GIF, JPEG, PNG or TIFF, 10MB or less).
    """

    video_title: str = ""
    description: str = ""
    thum: str = ""
    title: str = ""
    content_category: ContentCategory = ContentCategory.OTHER

    def form_fields(self) -> dict[str, str]:
        fields: dict[str, str] = {}
        for key in ("video_title", "description", "thum", "title"):
            value = getattr(self, key).strip()
            if value:
                fields[key] = value
        if self.content_category is not ContentCategory.OTHER:
            fields["content_category"] = self.content_category.value
        return fields


@dataclass
class UploadSession:
    node_id: str
    total_size: int
    session_id: str = ""
    video_id: str = ""
    start_offset: int = 0
    end_offset: int = 0
    phase: UploadPhase = UploadPhase.START

    @property
    def converged(self) -> bool:
        return self.start_offset == self.end_offset

    def accept_offsets(self, start_offset: int, end_offset: int) -> None:
        if start_offset < 0 or end_offset < start_offset:
            raise ValueError(f"invalid offsets start={start_offset} end={end_offset}")
        if start_offset > self.total_size:
            raise ValueError(f"start_offset {start_offset} is past total_size {self.total_size}")
        self.start_offset = start_offset
        self.end_offset = min(end_offset, self.total_size)


@dataclass(frozen=True)
class ChunkDescriptor:
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class Initialized:
    video_id: str
    session_id: str
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class ChunkAck:
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class Finished:
    success: bool


@dataclass(frozen=True)
class Cancelled:
    success: bool = True


PhaseResult = Union[Initialized, ChunkAck, Finished, Cancelled]


@dataclass(frozen=True)
class UploadOutcome:
    video_id: str
    session_id: str
    success: bool
    cancelled: bool = False
    transfers: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"method": UploadMethod.RESUMABLE.value, **asdict(self)}


@dataclass(frozen=True)
class PostResponse:
    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"method": UploadMethod.NON_RESUMABLE.value, "video_id": self.id, "success": True}
