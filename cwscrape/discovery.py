"""Discovery jobs: find tagged resources, list their metrics and fetch data."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol

from cwscrape.associator import Associator
from cwscrape.model import (
    CloudwatchData,
    DiscoveryJob,
    GetMetricDataProcessingParams,
    Metric,
    MetricConfig,
    MetricMigrationParams,
    TaggedResource,
)

_LOGGER = logging.getLogger(__name__)


class _ResourceAssociator(Protocol):
    def associate_metric_to_resource(
        self, metric: Metric
    ) -> tuple[TaggedResource | None, bool]: ...


class _TaggingClient(Protocol):
    def get_resources(self, job: DiscoveryJob, region: str) -> list[TaggedResource]: ...


class _CloudwatchClient(Protocol):
    def list_metrics(
        self,
        namespace: str,
        metric: MetricConfig,
        recently_active_only: bool,
        on_page: Callable[[list[Metric]], None],
    ) -> None: ...


class _MetricDataProcessor(Protocol):
    def run(self, namespace: str, requests: list[CloudwatchData]) -> list[CloudwatchData]: ...


class NopAssociator:
    """Associates nothing and skips nothing."""

    def associate_metric_to_resource(self, metric: Metric) -> tuple[TaggedResource | None, bool]:
        """Keep every metric as a global metric, without a resource."""
        _LOGGER.debug(
            "no associator in use, keeping metric with %d dimensions", len(metric.dimensions)
        )
        return None, False


def metric_dimensions_match_names(metric: Metric, dimension_names: list[str]) -> bool:
    """Return True if the metric has exactly the required dimension names."""
    if len(dimension_names) != len(metric.dimensions):
        return False
    return all(dimension.name in dimension_names for dimension in metric.dimensions)


def get_filtered_metric_datas(
    namespace: str,
    tags_on_metrics: list[str] | None,
    metrics: list[Metric],
    dimension_names: list[str] | None,
    metric_config: MetricConfig,
    associator: _ResourceAssociator,
    logger: logging.Logger | None = None,
) -> list[CloudwatchData]:
    """Turn listed metrics into one request per configured statistic."""
    logger = logger or _LOGGER
    result: list[CloudwatchData] = []
    for metric in metrics:
        if dimension_names and not metric_dimensions_match_names(metric, dimension_names):
            continue

        resource, skip = associator.associate_metric_to_resource(metric)
        if skip:
            logger.debug(
                "skipping metric unmatched by associator metric=%s dimensions=%s",
                metric_config.name,
                ",".join(f"{d.name}={d.value}" for d in metric.dimensions),
            )
            continue

        if resource is None:
            resource = TaggedResource(arn="global", namespace=namespace)

        tags = resource.metric_tags(tags_on_metrics)
        for statistic in metric_config.statistics:
            result.append(
                CloudwatchData(
                    metric_name=metric_config.name,
                    resource_name=resource.arn,
                    namespace=namespace,
                    dimensions=metric.dimensions,
                    tags=tags,
                    get_metric_data_processing_params=GetMetricDataProcessingParams(
                        period=metric_config.period,
                        length=metric_config.length,
                        delay=metric_config.delay,
                        statistic=statistic,
                    ),
                    metric_migration_params=MetricMigrationParams(
                        nil_to_zero=metric_config.nil_to_zero,
                        add_cloudwatch_timestamp=metric_config.add_cloudwatch_timestamp,
                    ),
                )
            )
    return result


def get_metric_data_for_queries(
    job: DiscoveryJob,
    cloudwatch_client: _CloudwatchClient,
    resources: list[TaggedResource],
    logger: logging.Logger | None = None,
) -> list[CloudwatchData]:
    """List the metrics of every configured metric concurrently and build requests."""
    logger = logger or _LOGGER
    if job.dimensions_regexps and resources:
        associator: _ResourceAssociator = Associator(job.dimensions_regexps, resources, logger)
    else:
        # Nothing to associate, but the metrics must not be skipped.
        associator = NopAssociator()

    if not job.metrics:
        return []

    def fetch(metric_config: MetricConfig) -> list[CloudwatchData]:
        collected: list[CloudwatchData] = []

        def on_page(page: list[Metric]) -> None:
            collected.extend(
                get_filtered_metric_datas(
                    job.namespace,
                    job.exported_tags_on_metrics,
                    page,
                    job.dimension_name_requirements,
                    metric_config,
                    associator,
                    logger,
                )
            )

        try:
            cloudwatch_client.list_metrics(
                job.namespace, metric_config, job.recently_active_only, on_page
            )
        except Exception as err:  # a failing metric must not stop the others
            logger.error(
                "Failed to get full metric list metric_name=%s namespace=%s err=%s",
                metric_config.name,
                job.namespace,
                err,
            )
        return collected

    with ThreadPoolExecutor(max_workers=len(job.metrics)) as pool:
        chunks = list(pool.map(fetch, job.metrics))
    return [data for chunk in chunks for data in chunk]


def run_discovery_job(
    job: DiscoveryJob,
    region: str,
    tagging_client: _TaggingClient,
    cloudwatch_client: _CloudwatchClient,
    processor: _MetricDataProcessor,
    logger: logging.Logger | None = None,
) -> tuple[list[TaggedResource], list[CloudwatchData]]:
    """Run a discovery job; failures are logged and yield empty results."""
    logger = logger or _LOGGER
    logger.debug("Get tagged resources")
    try:
        resources = tagging_client.get_resources(job, region)
    except Exception as err:
        logger.error("Couldn't describe resources err=%s", err)
        return [], []

    if not resources:
        logger.debug("No tagged resources region=%s namespace=%s", region, job.namespace)

    requests = get_metric_data_for_queries(job, cloudwatch_client, resources, logger)
    if not requests:
        logger.info("No metrics data found")
        return resources, []

    try:
        data = processor.run(job.namespace, requests)
    except Exception as err:
        logger.error("Failed to get metric data err=%s", err)
        return [], []
    return resources, data