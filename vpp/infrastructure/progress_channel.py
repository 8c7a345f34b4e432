import queue
from typing import Iterator, Optional, Tuple
from vpp.domain.models import ProcessingProgress

_CLOSED = object()

class ProgressChannel:
    """Typed, ordered channel of progress snapshots for one asset.

    The orchestrator thread calls `send` (usable directly as a progress sink),
    a consumer thread iterates the channel until `close` is called.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, progress: ProcessingProgress) -> None:
        if self._closed:
            raise RuntimeError("Cannot send on a closed progress channel")
        self._queue.put(progress)

    __call__ = send

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    def receive(self, timeout: Optional[float] = None) -> Tuple[bool, Optional[ProcessingProgress]]:
        """Returns (open, item). (True, None) means the timeout expired."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return True, None
        if item is _CLOSED:
            return False, None
        return True, item

    def __iter__(self) -> Iterator[ProcessingProgress]:
        while True:
            is_open, item = self.receive()
            if not is_open:
                return
            yield item
