"""Data types shared by the discovery and metric-retrieval stages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True)
class Dimension:
    """A CloudWatch metric dimension."""

    name: str
    value: str


@dataclass(frozen=True)
class Tag:
    """A key/value tag attached to a resource or exported on a metric."""

    key: str
    value: str


@dataclass
class Metric:
    """A metric as returned by the ListMetrics API."""

    metric_name: str = ""
    namespace: str = ""
    dimensions: list[Dimension] = field(default_factory=list)


@dataclass
class TaggedResource:
    """A resource found through the tagging API."""

    arn: str = ""
    namespace: str = ""
    region: str = ""
    tags: list[Tag] = field(default_factory=list)

    def metric_tags(self, tags_on_metrics: list[str] | None) -> list[Tag]:
        """Return one tag per requested key, valued from the resource or empty."""
        if not tags_on_metrics:
            return []
        values = {}
        for tag in self.tags:
            values.setdefault(tag.key, tag.value)
        return [Tag(key=key, value=values.get(key, "")) for key in tags_on_metrics]


@dataclass
class MetricConfig:
    """Configuration of one metric to scrape."""

    name: str = ""
    statistics: list[str] = field(default_factory=list)
    period: int = 0
    length: int = 0
    delay: int = 0
    nil_to_zero: bool = False
    add_cloudwatch_timestamp: bool = False


@dataclass
class DimensionsRegexp:
    """A regular expression over ARNs whose groups yield the named dimensions."""

    regexp: re.Pattern[str]
    dimensions_names: list[str] = field(default_factory=list)


@dataclass
class DiscoveryJob:
    """A job that discovers resources by tag and scrapes their metrics."""

    namespace: str = ""
    regions: list[str] = field(default_factory=list)
    metrics: list[MetricConfig] = field(default_factory=list)
    dimensions_regexps: list[DimensionsRegexp] = field(default_factory=list)
    exported_tags_on_metrics: list[str] = field(default_factory=list)
    dimension_name_requirements: list[str] = field(default_factory=list)
    recently_active_only: bool = False


@dataclass
class GetMetricDataProcessingParams:
    """Parameters used while a metric is waiting for GetMetricData."""

    query_id: str = ""
    period: int = 0
    length: int = 0
    delay: int = 0
    statistic: str = ""


@dataclass(frozen=True)
class GetMetricDataResult:
    """The value GetMetricData returned for one metric."""

    statistic: str = ""
    datapoint: float | None = None
    timestamp: datetime | None = None


@dataclass
class MetricMigrationParams:
    """Options applied when the data is turned into exported metrics."""

    nil_to_zero: bool = False
    add_cloudwatch_timestamp: bool = False


@dataclass
class CloudwatchData:
    """One metric/statistic pair travelling through the scrape pipeline."""

    metric_name: str = ""
    resource_name: str = ""
    namespace: str = ""
    dimensions: list[Dimension] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    get_metric_data_processing_params: GetMetricDataProcessingParams | None = None
    metric_migration_params: MetricMigrationParams = field(default_factory=MetricMigrationParams)
    get_metric_data_result: GetMetricDataResult | None = None
    get_metric_statistics_result: Any = None


@dataclass(frozen=True)
class MetricDataResult:
    """A single result entry of a GetMetricData response."""

    id: str = ""
    datapoint: float | None = None
    timestamp: datetime | None = None


@dataclass
class ListMetricsParams:
    """Parameters of a ListMetrics run."""

    namespace: str = ""
    metrics: list[MetricConfig] = field(default_factory=list)
    recently_active_only: bool = False
    dimension_name_requirements: list[str] = field(default_factory=list)


@dataclass
class Resource:
    """A resource a metric was attributed to.

    The name is the ARN when a unique resource was found, "global" when none
    was, and the namespace name for custom namespaces.
    """

    name: str = ""
    tags: list[Tag] = field(default_factory=list)


@dataclass
class Resources:
    """Resources attached to a set of metrics."""

    static_resource: Resource | None = None
    associated_resources: list[Resource | None] = field(default_factory=list)


class MetricResourceEnricher(Protocol):
    """Attaches resources to metrics."""

    def enrich(self, metrics: list[Metric]) -> tuple[list[Metric], Resources]:
        """Return the kept metrics and the resources they belong to."""