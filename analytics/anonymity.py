"""Anonymity-set statistics across many withdrawals."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence


@dataclass
class AnonymitySetStats:
    mean: float = 0.0
    median: float = 0.0
    min: int = 0
    max: int = 0
    p25: float = 0.0
    p75: float = 0.0
    distribution: Dict[int, int] = field(default_factory=dict)  # size -> count


def percentile(sorted_values: Sequence[int], p: float) -> float:
    """Linear-interpolated percentile of an ascending sequence."""
    if not sorted_values:
        return 0.0
    
    index = (p / 100) * (len(sorted_values) - 1)
    lower = int(index)
    upper = min(lower + 1, len(sorted_values) - 1)
    weight = index - lower
    if weight == 0:
        return float(sorted_values[lower])
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def anonymity_set_statistics(sizes: Iterable[int]) -> AnonymitySetStats:
    """Summary statistics of anonymity set sizes. All zero when empty."""
    ordered = sorted(sizes)
    if not ordered:
        return AnonymitySetStats()
    
    dist: Dict[int, int] = {}
    for size in ordered:
        dist[size] = dist.get(size, 0) + 1
    
    return AnonymitySetStats(
        mean=sum(ordered) / len(ordered),
        median=percentile(ordered, 50),
        min=ordered[0],
        max=ordered[-1],
        p25=percentile(ordered, 25),
        p75=percentile(ordered, 75),
        distribution=dist,
    )


def find_weak_anonymity_sets(results: Iterable, threshold: int = 10) -> List:
    """Results (anything with ``anonymity_set``) below the threshold."""
    return [r for r in results if r.anonymity_set < threshold]
