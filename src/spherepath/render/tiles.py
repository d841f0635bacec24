"""Tile partitioning and the per-pass work queue.

A frame is cut into horizontal strips of tile_height scanlines (the last strip
may be shorter). The WorkQueue hands tiles out in order for the current pass,
records which ones have been merged, and is reset to the start once the whole
pass is complete or the scene changes.

Tiles given back after a worker failure go to the front of the queue so they
are re-issued before any untouched tile.

Example:
    >>> from spherepath.render.tiles import WorkQueue
    >>> queue = WorkQueue(height=40, tile_height=16)
    >>> [tile.rows for tile in queue.tiles]
    [16, 16, 8]
    >>> tile_id, tile = queue.next()
    >>> queue.mark_complete(tile_id)
"""

from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class Tile:
    """A horizontal strip of scanlines.

    Attributes:
        start_row: First row of the strip.
        end_row: One past the last row of the strip.
    """

    start_row: int
    end_row: int

    @property
    def rows(self) -> int:
        """Number of scanlines in the tile."""
        return self.end_row - self.start_row


def partition_rows(height: int, tile_height: int) -> list[Tile]:
    """Split [0, height) into consecutive tiles of tile_height rows."""
    return [
        Tile(start, min(start + tile_height, height)) for start in range(0, height, tile_height)
    ]


class WorkQueue:
    """Ordered tiles of the current pass with assignment and completion tracking."""

    def __init__(self, height: int, tile_height: int) -> None:
        self._tile_height = tile_height
        self._tiles = partition_rows(height, tile_height)
        self._cursor = 0
        self._returned: deque[int] = deque()
        self._completed: set[int] = set()

    @property
    def tiles(self) -> list[Tile]:
        return list(self._tiles)

    @property
    def tile_height(self) -> int:
        return self._tile_height

    @property
    def cursor(self) -> int:
        """Index of the next untouched tile."""
        return self._cursor

    @property
    def completed(self) -> frozenset[int]:
        return frozenset(self._completed)

    def __len__(self) -> int:
        return len(self._tiles)

    def tile(self, tile_id: int) -> Tile:
        return self._tiles[tile_id]

    def next(self) -> tuple[int, Tile] | None:
        """Take the next tile to render.

        Returns:
            (tile_id, tile), or None when every tile of the pass has been
            handed out.
        """
        if self._returned:
            tile_id = self._returned.popleft()
            return tile_id, self._tiles[tile_id]
        if self._cursor >= len(self._tiles):
            return None
        tile_id = self._cursor
        self._cursor += 1
        return tile_id, self._tiles[tile_id]

    def has_next(self) -> bool:
        return bool(self._returned) or self._cursor < len(self._tiles)

    def requeue_front(self, tile_id: int) -> None:
        """Put a handed-out but unfinished tile back at the front of the queue."""
        if tile_id in self._completed or tile_id in self._returned:
            return
        self._returned.appendleft(tile_id)

    def mark_complete(self, tile_id: int) -> None:
        if not 0 <= tile_id < len(self._tiles):
            raise IndexError(f"Tile id {tile_id} outside queue of {len(self._tiles)} tiles")
        self._completed.add(tile_id)

    def is_pass_complete(self) -> bool:
        return len(self._completed) == len(self._tiles)

    def reset(self) -> None:
        """Start a new pass over the same tiles."""
        self._cursor = 0
        self._returned.clear()
        self._completed.clear()

    def __repr__(self) -> str:
        return (
            f"WorkQueue(tiles={len(self._tiles)}, cursor={self._cursor}, "
            f"completed={len(self._completed)})"
        )
