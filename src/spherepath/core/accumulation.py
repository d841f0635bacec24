"""Per-pixel radiance accumulation and display packing.

Every pixel keeps a running sum of radiance samples and a sample count. The
displayed color is the mean scaled to 0..255, clamped and floored per channel,
packed as a 32-bit RGBA word with red in the lowest byte:

    (A << 24) | (B << 16) | (G << 8) | R,  A = 255

Tiles of rows are checked out to workers while they render. The buffer keeps
a ledger of checked-out row ranges and refuses to read or write them until the
tile is checked back in (or released after a worker failure). reset() and
resize() void all outstanding checkouts, since samples from an older
generation are meaningless.

Example:
    >>> from spherepath.core.accumulation import AccumulationBuffer
    >>> buffer = AccumulationBuffer(4, 2)
    >>> buffer.add_sample(0, (1.0, 0.5, 0.0))
    >>> hex(buffer.display_color(0))
    '0xff007fff'
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from spherepath.render.tiles import Tile

ALPHA_OPAQUE = 255


def tone_map(
    sums: npt.NDArray[np.float64],
    counts: npt.NDArray[np.uint32],
) -> npt.NDArray[np.uint32]:
    """Convert accumulated sums to 8-bit channel values.

    Args:
        sums: (..., 3) radiance sums.
        counts: (...) sample counts matching sums' leading shape.

    Returns:
        (..., 3) uint32 channel values floor(clamp(255 * sum / max(1, count), 0, 255)).
    """
    divisor = np.expand_dims(np.maximum(counts, 1), -1).astype(np.float64)
    scaled = np.clip(sums / divisor * 255.0, 0.0, 255.0)
    return np.floor(scaled).astype(np.uint32)


def pack_rgba(channels: npt.NDArray[np.uint32], alpha: int = ALPHA_OPAQUE) -> npt.NDArray[np.uint32]:
    """Pack (..., 3) channel values into (...) RGBA words, red in the low byte."""
    channels = channels.astype(np.uint32)
    return (
        (np.uint32(alpha) << np.uint32(24))
        | (channels[..., 2] << np.uint32(16))
        | (channels[..., 1] << np.uint32(8))
        | channels[..., 0]
    ).astype(np.uint32)


def display_colors(
    sums: npt.NDArray[np.float64],
    counts: npt.NDArray[np.uint32],
) -> npt.NDArray[np.uint32]:
    """Tone map and pack accumulated sums into display words."""
    return pack_rgba(tone_map(sums, counts))


def unpack_rgba(word: int) -> tuple[int, int, int, int]:
    """Split a packed display word into (r, g, b, a)."""
    word = int(word)
    return (word & 0xFF, (word >> 8) & 0xFF, (word >> 16) & 0xFF, (word >> 24) & 0xFF)


@dataclass
class TileSlice:
    """Copy of a tile's accumulation rows, owned by one worker.

    Attributes:
        sums: (rows, width, 3) float64 radiance sums.
        counts: (rows, width) uint32 sample counts.
    """

    sums: npt.NDArray[np.float64]
    counts: npt.NDArray[np.uint32]


class AccumulationBuffer:
    """Running per-pixel radiance sums, sample counts and packed colors.

    Pixels are addressed by linear index y * width + x.

    Attributes:
        width: Frame width in pixels.
        height: Frame height in pixels.
    """

    def __init__(self, width: int, height: int) -> None:
        self._width = 0
        self._height = 0
        self._checked_out: dict[Tile, None] = {}
        self.resize(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sums(self) -> npt.NDArray[np.float64]:
        """(height, width, 3) radiance sums."""
        return self._sums

    @property
    def counts(self) -> npt.NDArray[np.uint32]:
        """(height, width) sample counts."""
        return self._counts

    @property
    def display_buffer(self) -> npt.NDArray[np.uint32]:
        """Flat (width * height,) view of the packed display colors."""
        return self._colors.reshape(-1)

    @property
    def checked_out(self) -> list[Tile]:
        """Tiles currently owned by workers."""
        return list(self._checked_out)

    def resize(self, width: int, height: int) -> None:
        """Reallocate all buffers for a new frame size (cleared)."""
        self._width = width
        self._height = height
        self._sums = np.zeros((height, width, 3), dtype=np.float64)
        self._counts = np.zeros((height, width), dtype=np.uint32)
        self._colors = np.zeros((height, width), dtype=np.uint32)
        self._checked_out.clear()

    def reset(self) -> None:
        """Clear all samples and void outstanding checkouts."""
        self._sums.fill(0.0)
        self._counts.fill(0)
        self._colors.fill(0)
        self._checked_out.clear()

    # -------------------------------------------------------------------------
    # Per-pixel access
    # -------------------------------------------------------------------------

    def _pixel(self, pixel: int) -> tuple[int, int]:
        if not 0 <= pixel < self._width * self._height:
            raise IndexError(f"Pixel {pixel} outside {self._width}x{self._height} frame")
        y, x = divmod(pixel, self._width)
        self._check_row_owned(y)
        return y, x

    def add_sample(self, pixel: int, sample) -> None:
        """Add one radiance sample to a pixel and refresh its display color."""
        y, x = self._pixel(pixel)
        self._sums[y, x] += np.asarray(sample, dtype=np.float64)
        self._counts[y, x] += 1
        self._colors[y, x] = display_colors(self._sums[y, x], self._counts[y, x])

    def display_color(self, pixel: int) -> int:
        """Get the packed display color of a pixel."""
        y, x = self._pixel(pixel)
        return int(self._colors[y, x])

    def sample_count(self, pixel: int) -> int:
        """Get the number of samples accumulated in a pixel."""
        y, x = self._pixel(pixel)
        return int(self._counts[y, x])

    def to_rgba8(self) -> npt.NDArray[np.uint8]:
        """View the display colors as a (height, width, 4) uint8 RGBA image."""
        return self._colors.astype("<u4").view(np.uint8).reshape(self._height, self._width, 4)

    # -------------------------------------------------------------------------
    # Tile ownership
    # -------------------------------------------------------------------------

    def _check_row_owned(self, y: int) -> None:
        for tile in self._checked_out:
            if tile.start_row <= y < tile.end_row:
                raise RuntimeError(f"Row {y} belongs to checked-out tile {tile}")

    def is_checked_out(self, tile: Tile) -> bool:
        return tile in self._checked_out

    def checkout(self, tile: Tile) -> TileSlice:
        """Hand a tile's rows over to a worker.

        Returns:
            A TileSlice with copies of the tile's sums and counts.

        Raises:
            RuntimeError: If the tile is already checked out.
        """
        if tile in self._checked_out:
            raise RuntimeError(f"Tile {tile} is already checked out")
        rows = slice(tile.start_row, tile.end_row)
        tile_slice = TileSlice(
            sums=self._sums[rows].copy(),
            counts=self._counts[rows].copy(),
        )
        self._checked_out[tile] = None
        return tile_slice

    def checkin(
        self,
        tile: Tile,
        sums: npt.NDArray[np.float64],
        counts: npt.NDArray[np.uint32],
        colors: npt.NDArray[np.uint32],
    ) -> None:
        """Take a tile's rows back from a worker and merge its results.

        Raises:
            RuntimeError: If the tile is not checked out.
            ValueError: If the returned arrays do not match the tile's shape.
        """
        if tile not in self._checked_out:
            raise RuntimeError(f"Tile {tile} is not checked out")
        expected = (tile.rows, self._width)
        if sums.shape != expected + (3,) or counts.shape != expected or colors.shape != expected:
            raise ValueError(
                f"Tile {tile} result shapes {sums.shape}, {counts.shape}, {colors.shape} "
                f"do not match {expected}"
            )
        rows = slice(tile.start_row, tile.end_row)
        self._sums[rows] = sums
        self._counts[rows] = counts
        self._colors[rows] = colors
        del self._checked_out[tile]

    def release(self, tile: Tile) -> None:
        """Return ownership of a tile's rows without merging any data."""
        self._checked_out.pop(tile, None)

    def __repr__(self) -> str:
        return (
            f"AccumulationBuffer(width={self._width}, height={self._height}, "
            f"checked_out={len(self._checked_out)})"
        )
