from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from graph_video.config import NON_RESUMABLE_MAX_BYTES
from graph_video.models import ChunkDescriptor, UploadMethod, UploadSession

MB = 1024 * 1024


class ChunkSource(Protocol):
    @property
    def size(self) -> int: ...

    def read_range(self, offset: int, length: int) -> bytes: ...


def _clamp(size: int, offset: int, length: int) -> int:
    if offset < 0 or offset > size:
        raise ValueError(f"offset {offset} outside source of {size} bytes")
    if length < 0:
        raise ValueError(f"negative length {length}")
    return min(length, size - offset)


class FileChunkSource:
    """Reads byte ranges from a file on disk, opening it anew for every range."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._size = self.path.stat().st_size

    @property
    def size(self) -> int:
        return self._size

    def read_range(self, offset: int, length: int) -> bytes:
        length = _clamp(self._size, offset, length)
        if length == 0:
            return b""
        with self.path.open("rb") as handle:
            handle.seek(offset)
            data = handle.read(length)
        if len(data) != length:
            raise OSError(f"short read path={self.path} offset={offset} expected={length} got={len(data)}")
        return data


class BytesChunkSource:
    """In-memory blob, e.g. a file handed over by a browser form."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))

    @property
    def size(self) -> int:
        return len(self._data)

    def read_range(self, offset: int, length: int) -> bytes:
        length = _clamp(len(self._data), offset, length)
        return self._data[offset : offset + length].tobytes()


class ChunkPolicy(Protocol):
    def chunk_size(self, total_size: int) -> int: ...


@dataclass(frozen=True)
class FixedChunkPolicy:
    size: int = 4 * MB

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("chunk size must be positive")

    def chunk_size(self, total_size: int) -> int:
        return max(1, min(self.size, total_size))


DEFAULT_BANDS: tuple[tuple[int, int], ...] = (
    (50 * MB, 50 * MB),
    (500 * MB, 25 * MB),
    (NON_RESUMABLE_MAX_BYTES, 16 * MB),
)


@dataclass(frozen=True)
class SizeBandChunkPolicy:
    # (upper bound of total size, chunk size) pairs.
    bands: tuple[tuple[int, int], ...] = DEFAULT_BANDS
    fallback: int = 8 * MB

    def __post_init__(self) -> None:
        if any(limit <= 0 or size <= 0 for limit, size in self.bands) or self.fallback <= 0:
            raise ValueError("size bands must be positive")

    def chunk_size(self, total_size: int) -> int:
        chosen = self.fallback
        for limit, size in sorted(self.bands):
            if total_size <= limit:
                chosen = size
                break
        return max(1, min(chosen, total_size))


def plan_chunk(session: UploadSession, chunk_size: int) -> ChunkDescriptor:
    """Next byte range to transfer, bounded by the remote window and the file end."""
    offset = session.start_offset
    window = session.end_offset - offset
    length = max(0, min(window, chunk_size, session.total_size - offset))
    return ChunkDescriptor(offset=offset, length=length)


def select_upload_method(total_size: int, threshold: int = NON_RESUMABLE_MAX_BYTES) -> UploadMethod:
    if total_size < threshold:
        return UploadMethod.NON_RESUMABLE
    return UploadMethod.RESUMABLE
