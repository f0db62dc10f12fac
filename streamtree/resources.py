"""Execution stream pool and per-stream workspaces."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import torch

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Workspace:
    """Scratch buffers owned by one execution stream for a single ``fit`` call."""

    slot: int
    values: torch.Tensor  # float32 [n_rows]   sampled column values
    labels: torch.Tensor  # int64   [n_rows]   sampled labels
    histogram: torch.Tensor  # int64 [bin_batch * n_classes]
    transfer: torch.Tensor  # float64 [2]      (delta, base) of the current column
    stream: Any = None  # torch.cuda.Stream on CUDA devices
    upstream: Any = None  # stream that launched the current task

    @property
    def nbytes(self) -> int:
        return sum(
            int(t.element_size() * t.numel())
            for t in (self.values, self.labels, self.histogram, self.transfer)
        )

    @contextmanager
    def activate(self) -> Iterator["Workspace"]:
        """Run the enclosed work on this workspace's stream.

        On CUDA the stream first waits for ``upstream``, the stream that
        submitted the task, so its writes to the shared row index
        (partitioning) are visible before any gather.
        """
        if self.stream is None:
            yield self
            return
        if self.upstream is not None:
            self.stream.wait_stream(self.upstream)
        with torch.cuda.stream(self.stream):
            yield self

    def read_transfer(self) -> tuple[float, float]:
        """Synchronously copy ``(delta, base)`` to the host."""
        delta, base = self.transfer.tolist()
        return float(delta), float(base)


class StreamPool:
    """Bounded pool of ``n_streams`` workers, one workspace per worker.

    The pool is acquired at the start of a fit and released at its end; it is
    never shared between concurrent fits.
    """

    def __init__(self, n_streams: int, device: torch.device) -> None:
        if n_streams < 1:
            raise ValueError("n_streams must be positive")
        self.n_streams = int(n_streams)
        self.device = device
        self._workspaces: list[Workspace] = []
        self._executor: ThreadPoolExecutor | None = None
        self._peak_bytes = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._executor is not None

    @property
    def workspaces(self) -> tuple[Workspace, ...]:
        return tuple(self._workspaces)

    @property
    def peak_bytes(self) -> int:
        return self._peak_bytes

    def acquire(self, n_rows: int, n_classes: int, bin_batch: int) -> None:
        with self._lock:
            if self.active:
                raise RuntimeError("stream pool is already in use by another fit")
            self._acquire_locked(n_rows, n_classes, bin_batch)

    def _acquire_locked(self, n_rows: int, n_classes: int, bin_batch: int) -> None:
        use_cuda_streams = self.device.type == "cuda"
        workspaces: list[Workspace] = []
        for slot in range(self.n_streams):
            workspaces.append(
                Workspace(
                    slot=slot,
                    values=torch.empty(n_rows, dtype=torch.float32, device=self.device),
                    labels=torch.empty(n_rows, dtype=torch.int64, device=self.device),
                    histogram=torch.zeros(bin_batch * n_classes, dtype=torch.int64, device=self.device),
                    transfer=torch.zeros(2, dtype=torch.float64, device=self.device),
                    stream=torch.cuda.Stream(device=self.device) if use_cuda_streams else None,
                )
            )
        self._workspaces = workspaces
        self._peak_bytes = sum(ws.nbytes for ws in workspaces)
        self._executor = ThreadPoolExecutor(
            max_workers=self.n_streams, thread_name_prefix="streamtree-stream"
        )
        logger.debug(
            "acquired %d stream workspace(s), %d bytes total", self.n_streams, self._peak_bytes
        )

    def release(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
            if executor is not None:
                executor.shutdown(wait=True)
            self._workspaces = []

    @contextmanager
    def lease(self, n_rows: int, n_classes: int, bin_batch: int) -> Iterator["StreamPool"]:
        self.acquire(n_rows, n_classes, bin_batch)
        try:
            yield self
        finally:
            self.release()

    def submit(self, slot: int, fn: Callable[..., Any], *args: Any) -> Future:
        if self._executor is None:
            raise RuntimeError("stream pool has not been acquired")
        ws = self._workspaces[slot]
        if ws.stream is not None:
            ws.upstream = torch.cuda.current_stream(self.device)
        return self._executor.submit(fn, ws, *args)

    def synchronize(self) -> None:
        for ws in self._workspaces:
            if ws.stream is not None:
                ws.stream.synchronize()
