from __future__ import annotations

from typing import Iterable, Iterator, Optional

from phase_estimator.core.errors import EstimateValidationError
from phase_estimator.core.model import Feature


class FeatureLedger:
    """Ordered collection of features, unique by id.

    Owned by feature-management code; the allocation engine only iterates it.
    """

    def __init__(self, features: Iterable[Feature] = ()) -> None:
        self._features: list[Feature] = []
        for f in features:
            self.add(f)

    def __iter__(self) -> Iterator[Feature]:
        return iter(list(self._features))

    def __len__(self) -> int:
        return len(self._features)

    def get(self, feature_id: str) -> Optional[Feature]:
        for f in self._features:
            if f.id == feature_id:
                return f
        return None

    def add(self, feature: Feature) -> None:
        if self.get(feature.id) is not None:
            raise EstimateValidationError(
                code="E_DUPLICATE_ID",
                message=f"duplicate feature id: {feature.id}",
                path="features",
            )
        self._features.append(feature)

    def update(self, feature: Feature) -> None:
        self._features[self._index_of(feature.id)] = feature

    def remove(self, feature_id: str) -> Feature:
        return self._features.pop(self._index_of(feature_id))

    def total_man_days(self) -> float:
        return sum((f.man_days for f in self._features), 0.0)

    def _index_of(self, feature_id: str) -> int:
        for i, f in enumerate(self._features):
            if f.id == feature_id:
                return i
        raise EstimateValidationError(
            code="E_UNKNOWN_FEATURE",
            message=f"unknown feature id: {feature_id}",
            path="features",
        )
