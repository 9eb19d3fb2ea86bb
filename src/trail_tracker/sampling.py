"""Location sources: external producers that push fixes into a session."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional

log = logging.getLogger(__name__)

Sink = Callable[[Any], Any]


class LocationSource(ABC):
    """Device GPS (or anything shaped like it).

    The session calls ``start`` on idle->tracking and ``stop`` on finalization.
    ``suspend``/``resume`` are only used when the power policy asks for the
    source to go quiet while paused.
    """

    @abstractmethod
    def start(self, sink: Sink) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError

    def suspend(self) -> None:
        self.stop()

    def resume(self, sink: Sink) -> None:
        self.start(sink)


class NullSource(LocationSource):
    """No sampling; points arrive through ``append_point`` directly."""

    def start(self, sink: Sink) -> None:
        return None

    def stop(self) -> None:
        return None


class ReplaySource(LocationSource):
    """
    Feeds a recorded list of fixes into the sink on demand, so a session can
    be driven end-to-end without a device.
    """

    def __init__(self, fixes: Iterable[Any]) -> None:
        self.fixes: List[Any] = list(fixes)
        self.position = 0
        self._sink: Optional[Sink] = None

    @property
    def running(self) -> bool:
        return self._sink is not None

    @property
    def exhausted(self) -> bool:
        return self.position >= len(self.fixes)

    def start(self, sink: Sink) -> None:
        self._sink = sink

    def stop(self) -> None:
        self._sink = None

    def play(self, count: Optional[int] = None) -> List[Any]:
        """Push up to *count* fixes (all remaining if None); returns sink results."""
        results: List[Any] = []
        while self._sink is not None and not self.exhausted:
            if count is not None and len(results) >= count:
                break
            fix = self.fixes[self.position]
            self.position += 1
            results.append(self._sink(fix))
        if self._sink is None and not self.exhausted:
            log.debug("Replay source stopped with %d fixes left", len(self.fixes) - self.position)
        return results
