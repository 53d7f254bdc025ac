# cluster/layout.py
"""
Deferred position directives for the rendering surface.

After an automatic clustering run the relabeled nodes are emitted first; the
positions may only be applied once the renderer has ingested them. The
renderer acknowledges with the generation number it applied; if no ack
arrives, a fallback timer flushes after a short fixed delay. Every schedule()
bumps the generation, so directives from an older run are never delivered
after a newer run was requested.
"""
from __future__ import annotations
import os
import threading
from typing import Callable, Dict, Optional, Tuple

Position = Tuple[float, float]
PositionSink = Callable[[int, Dict[str, Position]], None]

FALLBACK_DELAY_S = float(os.getenv("GRAPH_LAYOUT_DELAY", "0.3"))


class LayoutDispatcher:
    def __init__(self, sink: PositionSink, fallback_delay: Optional[float] = FALLBACK_DELAY_S) -> None:
        """`fallback_delay=None` disables the timer (ack-only)."""
        self._sink = sink
        self._fallback_delay = fallback_delay
        self._lock = threading.RLock()
        self._generation = 0
        self._pending: Optional[Dict[str, Position]] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> Optional[Dict[str, Position]]:
        with self._lock:
            return dict(self._pending) if self._pending is not None else None

    def schedule(self, positions: Dict[str, Position]) -> int:
        """Queue positions for the next renderer ack; supersedes any pending run."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._pending = dict(positions)
            if self._fallback_delay is not None:
                self._timer = threading.Timer(self._fallback_delay, self._flush, args=(generation,))
                self._timer.daemon = True
                self._timer.start()
            return generation

    def acknowledge(self, generation: int) -> bool:
        """Renderer reports it applied the node update for `generation`.
        Stale or duplicate acks are ignored (returns False)."""
        return self._flush(generation)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._pending = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _flush(self, generation: int) -> bool:
        with self._lock:
            if generation != self._generation or self._pending is None:
                return False
            positions, self._pending = self._pending, None
            self._cancel_timer()
            # sink is called under the lock so a newer schedule() cannot interleave
            self._sink(generation, positions)
            return True
