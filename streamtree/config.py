"""Configuration objects for streamtree."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .errors import ConfigurationError

N_STREAMS_ENV = "STREAMTREE_N_STREAMS"


@dataclass(frozen=True, slots=True)
class TreeConfig:
    """Hyper-parameters steering tree induction.

    Parameters
    ----------
    max_depth:
        Maximum depth of a leaf (root is depth 0). ``-1`` leaves depth
        unbounded.
    max_leaves:
        Leaf budget. ``-1`` means unbounded. The budget is soft: a node that
        was already split when the budget is reached still grows both of its
        children, so the realised count may exceed it slightly.
    column_fraction:
        Fraction of columns drawn uniformly without replacement at every
        node. A fraction that rounds to zero columns turns nodes into leaves.
    n_bins:
        Number of candidate thresholds evaluated per column and node
        (further capped by ``n_sampled_rows + 1`` at each node).
    bin_batch_size:
        Number of candidate thresholds scored together in one round.
        ``0`` scores all ``n_bins`` at once; a positive value must not
        exceed ``n_bins``.
    n_streams:
        Size of the execution stream pool. Columns of one split search are
        dispatched round-robin across the pool, every stream owning one
        workspace.
    random_state:
        Optional seed of the generator drawing column subsamples.
    device:
        Torch device identifier (``"cpu"`` or ``"cuda"``).
    """

    max_depth: int = -1
    max_leaves: int = -1
    column_fraction: float = 1.0
    n_bins: int = 8
    bin_batch_size: int = 0
    n_streams: int = 1
    random_state: int | None = None
    device: str = "cpu"

    def validate(self) -> "TreeConfig":
        if self.max_depth < -1:
            raise ConfigurationError("max_depth must be -1 (unbounded) or non-negative")
        if self.max_leaves == 0 or self.max_leaves < -1:
            raise ConfigurationError("max_leaves must be -1 (unbounded) or positive")
        if not 0.0 <= float(self.column_fraction) <= 1.0:
            raise ConfigurationError("column_fraction must lie within [0, 1]")
        if self.n_bins < 1:
            raise ConfigurationError("n_bins must be positive")
        if self.bin_batch_size < 0:
            raise ConfigurationError("bin_batch_size must be non-negative")
        if self.bin_batch_size > self.n_bins:
            raise ConfigurationError(
                f"bin_batch_size ({self.bin_batch_size}) exceeds n_bins ({self.n_bins})"
            )
        if self.n_streams < 1:
            raise ConfigurationError("n_streams must be positive")
        return self


def resolve_bin_batch_size(config: TreeConfig) -> int:
    """Return the per-round bin ceiling, mapping ``0`` to ``n_bins``."""
    if config.bin_batch_size <= 0:
        return int(config.n_bins)
    return int(config.bin_batch_size)


def apply_env_overrides(config: TreeConfig) -> TreeConfig:
    env_streams = os.getenv(N_STREAMS_ENV)
    if not env_streams:
        return config
    try:
        n_streams = int(env_streams)
    except ValueError as exc:
        raise ConfigurationError(f"{N_STREAMS_ENV} must be an integer, got {env_streams!r}") from exc
    return replace(config, n_streams=n_streams)
