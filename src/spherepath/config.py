"""Render configuration.

RenderConfig collects the knobs of a ProgressiveRenderer in one dataclass with
defaults suitable for an interactive preview. Values can be overridden from
SPHEREPATH_* environment variables with RenderConfig.from_env().

Example:
    >>> from spherepath.config import RenderConfig
    >>> config = RenderConfig(width=160, height=120, worker_count=2)
    >>> config.validate()
    >>> config.resolved_worker_count()
    2
"""

import os
from dataclasses import dataclass, fields, replace

from spherepath.errors import InvalidConfiguration

# Prefix for environment variable overrides (e.g. SPHEREPATH_MAX_BOUNCES=8)
ENV_PREFIX = "SPHEREPATH_"


def check_positive_int(name: str, value: int) -> None:
    """Raise InvalidConfiguration unless value is an integer >= 1."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfiguration(f"{name} must be an integer >= 1, got {value!r}")


def check_fov(fov: float) -> None:
    """Raise InvalidConfiguration unless 0 < fov < 180 degrees."""
    if not 0.0 < fov < 180.0:
        raise InvalidConfiguration(f"fov must be in (0, 180) degrees, got {fov!r}")


@dataclass
class RenderConfig:
    """Configuration for a progressive render session.

    Attributes:
        width: Frame width in pixels.
        height: Frame height in pixels.
        tile_height: Number of scanlines per tile.
        samples_per_frame: Monte Carlo samples added to each pixel per pass.
        max_bounces: Maximum path length traced per sample.
        worker_count: Number of worker processes. None uses os.cpu_count();
            0 renders inline on the control thread.
        respawn_failed_workers: Replace a failed worker with a fresh process
            instead of retiring it.
        max_consecutive_failures: Number of worker failures in a row, with no
            tile merged in between, after which the renderer gives up.
        seed: Base random seed for worker kernels. None derives one from the
            process id.
        poll_interval: Seconds the control loop waits for worker events per
            pump() call when no timeout is given.
    """

    width: int = 320
    height: int = 240
    tile_height: int = 16
    samples_per_frame: int = 1
    max_bounces: int = 4
    worker_count: int | None = None
    respawn_failed_workers: bool = True
    max_consecutive_failures: int = 8
    seed: int | None = None
    poll_interval: float = 0.01

    def validate(self) -> None:
        """Check every field against its contract.

        Raises:
            InvalidConfiguration: If any value is out of range.
        """
        check_positive_int("width", self.width)
        check_positive_int("height", self.height)
        check_positive_int("tile_height", self.tile_height)
        check_positive_int("samples_per_frame", self.samples_per_frame)
        check_positive_int("max_bounces", self.max_bounces)
        check_positive_int("max_consecutive_failures", self.max_consecutive_failures)
        if self.worker_count is not None and (
            not isinstance(self.worker_count, int) or self.worker_count < 0
        ):
            raise InvalidConfiguration(
                f"worker_count must be None or an integer >= 0, got {self.worker_count!r}"
            )
        if self.poll_interval < 0:
            raise InvalidConfiguration(
                f"poll_interval must be non-negative, got {self.poll_interval!r}"
            )

    def resolved_worker_count(self) -> int:
        """Get the number of worker processes to start."""
        if self.worker_count is None:
            return os.cpu_count() or 1
        return self.worker_count

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "RenderConfig":
        """Build a config from SPHEREPATH_* environment variables.

        Explicit keyword overrides win over the environment.

        Args:
            environ: Mapping to read instead of os.environ.
            **overrides: Field values applied last.

        Returns:
            A validated RenderConfig.

        Raises:
            InvalidConfiguration: If a variable cannot be parsed or is out of range.
        """
        if environ is None:
            environ = dict(os.environ)

        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                values[f.name] = _parse_field(f.name, raw)
            except ValueError as e:
                raise InvalidConfiguration(
                    f"Cannot parse {ENV_PREFIX + f.name.upper()}={raw!r}: {e}"
                ) from e

        config = replace(cls(**values), **overrides)
        config.validate()
        return config


def _parse_field(name: str, raw: str):
    """Convert an environment string to the type of the named field."""
    if name == "respawn_failed_workers":
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError("expected a boolean")
    if name == "poll_interval":
        return float(raw)
    if name in ("worker_count", "seed") and raw.strip().lower() in ("", "none"):
        return None
    return int(raw)
