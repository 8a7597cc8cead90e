from threading import Lock
from typing import Dict, Optional, Protocol


class ScoreRepository(Protocol):
    def get_previous(self, iteration_id: str) -> Optional[int]:
        """Last recorded health score for the iteration, if any."""
        ...

    def record(self, iteration_id: str, score: int) -> Optional[int]:
        """Stores the score and returns the one it replaced."""
        ...


class ScoreLedger:
    """
    In-process memory of the last health score per iteration.
    Feeds the prior score into the health trend on the next analysis run.
    """

    def __init__(self):
        self._scores: Dict[str, int] = {}
        self._lock = Lock()

    def get_previous(self, iteration_id: str) -> Optional[int]:
        with self._lock:
            return self._scores.get(str(iteration_id))

    def record(self, iteration_id: str, score: int) -> Optional[int]:
        with self._lock:
            previous = self._scores.get(str(iteration_id))
            self._scores[str(iteration_id)] = score
            return previous

    def clear(self) -> None:
        with self._lock:
            self._scores.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._scores)
