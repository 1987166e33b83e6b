"""Best-effort mapping of ListMetrics results to tagged resources.

Each dimensions regexp extracts dimension values from resource ARNs. A metric
is attributed to the resource whose extracted dimensions match the metric's,
preferring the mappings with the most dimension names.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from cwscrape.model import DimensionsRegexp, Metric, TaggedResource

_LOGGER = logging.getLogger(__name__)

_AMAZON_MQ_BROKER_SUFFIX = re.compile(r"-[0-9]+\Z")

Signature = frozenset


def _signature(labels: dict[str, str]) -> Signature:
    return frozenset(labels.items())


@dataclass
class _DimensionsRegexpMapping:
    dimensions: list[str]
    resources_by_signature: dict[Signature, TaggedResource] = field(default_factory=dict)

    def __str__(self) -> str:
        entries = "".join(
            f"{sorted(signature)}={resource.arn},"
            for signature, resource in self.resources_by_signature.items()
        )
        return f"{{dimensions=[{''.join(self.dimensions)}], dimensions_mappings={{{entries}}}}}"


def contains_all(names: list[str], required: list[str]) -> bool:
    """Return True if every element of ``required`` is in ``names``."""
    return all(name in names for name in required)


def build_labels_map(metric: Metric, dimensions: list[str]) -> dict[str, str]:
    """Map the metric's dimensions named in ``dimensions`` to their values.

    AmazonMQ broker names lose their numeric standby suffix and SageMaker
    endpoint names are lower-cased so they compare with values taken from ARNs.
    """
    labels: dict[str, str] = {}
    for wanted in dimensions:
        for dimension in metric.dimensions:
            value = dimension.value
            if metric.namespace == "AWS/AmazonMQ" and dimension.name == "Broker":
                value = _AMAZON_MQ_BROKER_SUFFIX.sub("", value)
            if metric.namespace == "AWS/SageMaker" and dimension.name == "EndpointName":
                value = value.lower()
            if wanted == dimension.name:
                labels[dimension.name] = value
    return labels


class Associator:
    """Associates metrics with the resources their dimensions identify."""

    def __init__(
        self,
        dimensions_regexps: list[DimensionsRegexp],
        resources: list[TaggedResource],
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or _LOGGER
        self._debug = self._logger.isEnabledFor(logging.DEBUG)
        mappings: list[_DimensionsRegexpMapping] = []
        mapped: set[int] = set()

        for dimensions_regexp in dimensions_regexps:
            mapping = _DimensionsRegexpMapping(list(dimensions_regexp.dimensions_names))
            for index, resource in enumerate(resources):
                if index in mapped:
                    continue
                match = dimensions_regexp.regexp.search(resource.arn)
                if match is None:
                    continue
                labels = {
                    name: value or ""
                    for name, value in zip(dimensions_regexp.dimensions_names, match.groups())
                }
                mapping.resources_by_signature[_signature(labels)] = resource
                mapped.add(index)

            if mapping.resources_by_signature:
                mappings.append(mapping)
            elif self._debug:
                self._logger.debug(
                    "unable to define a regex mapping regex=%s", dimensions_regexp.regexp.pattern
                )

        # Most specific mappings first; the sort is stable for equal sizes.
        mappings.sort(key=lambda m: -len(m.dimensions))
        self._mappings = mappings

        if self._debug:
            for index, mapping in enumerate(self._mappings):
                self._logger.debug("associator mapping mapping_idx=%d mapping=%s", index, mapping)

    def associate_metric_to_resource(self, metric: Metric) -> tuple[TaggedResource | None, bool]:
        """Return the matching resource, if any, and whether to skip the metric.

        A metric without dimensions, or whose dimension names fit no mapping,
        is kept as a global metric. A metric whose names fit a mapping but
        whose values match no resource is skipped.
        """
        if not metric.dimensions:
            self._logger.debug("metric has no dimensions, don't skip metric_name=%s", metric.metric_name)
            return None, False

        names = [dimension.name for dimension in metric.dimensions]
        if self._debug:
            self._logger.debug(
                "associate loop start metric_name=%s dimensions=%s",
                metric.metric_name,
                ",".join(names),
            )

        mapping_found = False
        for index, mapping in enumerate(self._mappings):
            if not contains_all(names, mapping.dimensions):
                continue
            if self._debug:
                self._logger.debug(
                    "found mapping metric_name=%s mapping_idx=%d mapping=%s",
                    metric.metric_name,
                    index,
                    mapping,
                )
            mapping_found = True
            signature = _signature(build_labels_map(metric, mapping.dimensions))
            resource = mapping.resources_by_signature.get(signature)
            if resource is not None:
                self._logger.debug("resource matched metric_name=%s", metric.metric_name)
                return resource, False
            self._logger.debug("resource not matched metric_name=%s", metric.metric_name)

        self._logger.debug(
            "associate loop end metric_name=%s skip=%s", metric.metric_name, mapping_found
        )
        return None, mapping_found