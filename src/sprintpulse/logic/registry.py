from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from sprintpulse.data.dto import CurrentProgress, HistoricalVelocity, ModelEstimate
from sprintpulse.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

# (current, history) -> completion percentage, unclamped
ProjectionModel = Callable[[CurrentProgress, Optional[HistoricalVelocity]], float]


@dataclass(frozen=True)
class RegisteredModel:
    name: str
    weight: float
    model: ProjectionModel


class ProjectionRegistry:
    """
    Registry for completion-percentage projection models.
    Decouples the ensemble blend from the individual estimators.
    """

    def __init__(self) -> None:
        self._models: Dict[str, RegisteredModel] = {}

    def register(self, name: str, weight: float, model: ProjectionModel) -> None:
        if weight < 0:
            raise ValueError(f"Model weight must be non-negative: {name}={weight}")
        self._models[name] = RegisteredModel(name=name, weight=weight, model=model)
        logger.debug(f"Registered projection model: {name} (weight={weight})")

    def projection(self, name: str, weight: float) -> Callable[[ProjectionModel], ProjectionModel]:
        """Decorator form of register()."""
        def decorator(model: ProjectionModel) -> ProjectionModel:
            self.register(name, weight, model)
            return model
        return decorator

    def get_all(self) -> List[RegisteredModel]:
        return list(self._models.values())

    @property
    def total_weight(self) -> float:
        return sum(m.weight for m in self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def evaluate(
        self,
        current: CurrentProgress,
        history: Optional[HistoricalVelocity],
    ) -> List[Tuple[RegisteredModel, float]]:
        """Runs every registered model in registration order."""
        return [(entry, float(entry.model(current, history))) for entry in self._models.values()]

    @staticmethod
    def blend(results: List[Tuple[RegisteredModel, float]]) -> float:
        """Weighted sum of model outputs. Weights are expected to sum to 1.0."""
        return sum(value * entry.weight for entry, value in results)

    @staticmethod
    def breakdown(results: List[Tuple[RegisteredModel, float]]) -> List[ModelEstimate]:
        return [
            ModelEstimate(name=entry.name, value=round_half_up(value), weight=entry.weight)
            for entry, value in results
        ]
