"""Batching of metric requests for GetMetricData calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from cwscrape.model import CloudwatchData


@dataclass(frozen=True)
class StartAndEndTimeParams:
    """Time parameters shared by every request of a batch."""

    period: int = 0
    length: int = 0
    delay: int = 0


Batch = tuple[list[CloudwatchData], StartAndEndTimeParams]
PeriodDelayToBatchSize = dict[int, dict[int, int]]
PeriodDelayToLongestLength = dict[int, dict[int, int]]


class _BatchIteration:
    def has_more(self) -> bool:
        raise NotImplementedError

    def next_batch(self) -> Batch:
        raise NotImplementedError

    def __iter__(self) -> Iterator[Batch]:
        while self.has_more():
            yield self.next_batch()


class NothingToIterate(_BatchIteration):
    """An iterator with no batches."""

    def has_more(self) -> bool:
        return False

    def next_batch(self) -> Batch:
        return [], StartAndEndTimeParams()


class SimpleBatchIterator(_BatchIteration):
    """Slices the data into batches of at most ``metrics_per_query`` entries."""

    def __init__(
        self,
        metrics_per_query: int,
        data: list[CloudwatchData],
        params: StartAndEndTimeParams,
    ) -> None:
        if metrics_per_query <= 0:
            raise ValueError("metrics_per_query must be positive")
        self._data = data
        self._per_batch = metrics_per_query
        self._params = params
        self._size = -(-len(data) // metrics_per_query)
        self._current = 0

    def has_more(self) -> bool:
        return self._current < self._size

    def next_batch(self) -> Batch:
        if not self.has_more():
            return [], StartAndEndTimeParams()
        start = self._current * self._per_batch
        self._current += 1
        return self._data[start : start + self._per_batch], self._params


class TimeParameterBatchingIterator(_BatchIteration):
    """Chains batch iterators that each have their own time parameters."""

    def __init__(self, current: _BatchIteration, remaining: list[_BatchIteration]) -> None:
        self._current = current
        self._remaining = list(remaining)

    def has_more(self) -> bool:
        return self._current.has_more()

    def next_batch(self) -> Batch:
        batch = self._current.next_batch()
        if not self._current.has_more():
            self._current = self._remaining.pop() if self._remaining else NothingToIterate()
        return batch


def map_processing_params(
    data: list[CloudwatchData],
) -> tuple[PeriodDelayToBatchSize, PeriodDelayToLongestLength]:
    """Count entries and find the longest length for each period and delay."""
    sizes: PeriodDelayToBatchSize = {}
    longest: PeriodDelayToLongestLength = {}
    for datum in data:
        params = datum.get_metric_data_processing_params
        period_sizes = sizes.setdefault(params.period, {})
        period_longest = longest.setdefault(params.period, {})
        period_sizes[params.delay] = period_sizes.get(params.delay, 0) + 1
        period_longest[params.delay] = max(period_longest.get(params.delay, 0), params.length)
    return sizes, longest


def varying_time_parameter_iterator(
    metrics_per_query: int,
    data: list[CloudwatchData],
    batch_sizes: PeriodDelayToBatchSize,
    longest_lengths: PeriodDelayToLongestLength,
) -> _BatchIteration:
    """Build an iterator that batches the data per period and delay."""
    batches: dict[int, dict[int, list[CloudwatchData]]] = {
        period: {delay: [] for delay in delays} for period, delays in batch_sizes.items()
    }
    for datum in data:
        params = datum.get_metric_data_processing_params
        batches[params.period][params.delay].append(datum)

    iterators: list[_BatchIteration] = [
        SimpleBatchIterator(
            metrics_per_query,
            batch,
            StartAndEndTimeParams(
                period=period, length=longest_lengths[period][delay], delay=delay
            ),
        )
        for period, delays in batches.items()
        for delay, batch in delays.items()
    ]
    if not iterators:
        return NothingToIterate()
    return TimeParameterBatchingIterator(iterators[0], iterators[1:])


@dataclass(frozen=True)
class IteratorFactory:
    """Chooses the batching strategy that suits a set of requests."""

    metrics_per_query: int

    def build(self, data: list[CloudwatchData]) -> _BatchIteration:
        if not data:
            return NothingToIterate()
        sizes, longest = map_processing_params(data)
        if len(sizes) == 1:
            period = data[0].get_metric_data_processing_params.period
            if len(sizes[period]) == 1:
                delay = data[0].get_metric_data_processing_params.delay
                params = StartAndEndTimeParams(
                    period=period, length=longest[period][delay], delay=delay
                )
                return SimpleBatchIterator(self.metrics_per_query, data, params)
        return varying_time_parameter_iterator(self.metrics_per_query, data, sizes, longest)