"""Runs batched GetMetricData requests and attaches their results."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Protocol

from cwscrape.compact import compact
from cwscrape.iterator import IteratorFactory, StartAndEndTimeParams
from cwscrape.model import CloudwatchData, GetMetricDataResult, MetricDataResult
from cwscrape.windowcalculator import MetricWindowCalculator, SystemClock, format_time

_QUERY_ID_PREFIX = "id_"
_INTEGER = re.compile(r"[+-]?[0-9]+")


class GetMetricDataClient(Protocol):
    """A client able to call the GetMetricData API."""

    def get_metric_data(
        self,
        batch: list[CloudwatchData],
        namespace: str,
        start_time: datetime,
        end_time: datetime,
    ) -> list[MetricDataResult] | None:
        """Return the results for the batch, or None when nothing came back."""


def index_to_query_id(index: int) -> str:
    """Return the query id used for the entry at ``index`` of a batch."""
    return f"{_QUERY_ID_PREFIX}{index}"


def query_id_to_index(query_id: str) -> int:
    """Return the batch index encoded in a query id; raise ValueError if there is none."""
    text = query_id[len(_QUERY_ID_PREFIX):] if query_id.startswith(_QUERY_ID_PREFIX) else query_id
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid query id: {query_id!r}")
    return int(text)


class GetMetricDataProcessor:
    """Fetches metric data for requests in batches, concurrently."""

    def __init__(
        self,
        client: GetMetricDataClient,
        concurrency: int,
        window_calculator: MetricWindowCalculator,
        factory: IteratorFactory,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._concurrency = concurrency
        self._window_calculator = window_calculator
        self._factory = factory
        self._logger = logger or logging.getLogger(__name__)

    def run(self, namespace: str, requests: list[CloudwatchData]) -> list[CloudwatchData]:
        """Fill in results and return the requests that received one."""
        if not requests:
            return requests
        with ThreadPoolExecutor(max_workers=self._concurrency) as pool:
            futures = [
                pool.submit(self._process_batch, namespace, batch, params)
                for batch, params in self._factory.build(requests)
            ]
        for future in futures:
            future.result()
        return compact(requests, lambda data: data.get_metric_data_result is not None)

    def _process_batch(
        self, namespace: str, batch: list[CloudwatchData], params: StartAndEndTimeParams
    ) -> None:
        for index, entry in enumerate(batch):
            entry.get_metric_data_processing_params.query_id = index_to_query_id(index)
        start, end = self._window_calculator.calculate(
            timedelta(seconds=params.period),
            timedelta(seconds=params.length),
            timedelta(seconds=params.delay),
        )
        self._logger.debug(
            "GetMetricData window start_time=%s end_time=%s", format_time(start), format_time(end)
        )
        results = self._client.get_metric_data(batch, namespace, start, end)
        if results is None:
            self._logger.warning("GetMetricData partition empty result start=%s end=%s", start, end)
            return
        self._map_results(results, batch)

    def _map_results(self, results: list[MetricDataResult], batch: list[CloudwatchData]) -> None:
        for entry in results:
            try:
                index = query_id_to_index(entry.id)
            except ValueError as err:
                self._logger.warning("GetMetricData returned unknown query id: %s", err)
                continue
            if not 0 <= index < len(batch):
                self._logger.warning("GetMetricData returned unknown query id: %s", entry.id)
                continue
            data = batch[index]
            if data.get_metric_data_result is None:
                data.get_metric_data_result = GetMetricDataResult(
                    statistic=data.get_metric_data_processing_params.statistic,
                    datapoint=entry.datapoint,
                    timestamp=entry.timestamp,
                )
                data.get_metric_data_processing_params = None


def default_processor(
    client: GetMetricDataClient,
    metrics_per_query: int,
    concurrency: int,
    logger: logging.Logger | None = None,
) -> GetMetricDataProcessor:
    """Build a processor using the wall clock and the standard batching."""
    return GetMetricDataProcessor(
        client,
        concurrency,
        MetricWindowCalculator(SystemClock()),
        IteratorFactory(metrics_per_query),
        logger,
    )