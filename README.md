# cwscrape

`cwscrape` is a library for the core of a metrics exporter. It does four things:

- It lists the metrics a discovery job asks for.
- It ties each metric to the tagged resource it describes.
- It turns each metric into one request per statistic.
- It fetches the values of those requests in batches.

It has no runtime dependencies outside the standard library.

## Modules

### `cwscrape.model`

Plain data classes used throughout the package:

- `Dimension`, `Tag`, `Metric`.
- `TaggedResource`. Its `metric_tags(keys)` returns one `Tag` per requested key. The value
  comes from the resource, or is empty when the resource lacks that key.
- `MetricConfig`, `DimensionsRegexp`, `DiscoveryJob`.
- `GetMetricDataProcessingParams`, `GetMetricDataResult`, `MetricMigrationParams`,
  `CloudwatchData`.
- `MetricDataResult`, `ListMetricsParams`, `Resource`, `Resources`.
- `MetricResourceEnricher`, a protocol.

### `cwscrape.associator`

`Associator(dimensions_regexps, resources, logger=None)` matches every resource ARN
against each `DimensionsRegexp`. Each resource is assigned to the first regexp that matches
it. The regexp's groups are named by `dimensions_names`.

`associate_metric_to_resource(metric)` returns a pair `(resource_or_None, skip)`:

- **No dimensions:** the metric is kept as a global metric, `(None, False)`.
- **A mapping whose dimension names the metric has all of:** mappings are tried from the
  most dimension names to the fewest. The first whose values match a resource returns
  `(resource, False)`.
- **Names fit a mapping, but no values match:** the metric is skipped, `(None, True)`.
- **Names fit no mapping:** the metric is kept, `(None, False)`.

Before comparing, two dimension values are normalised:

- In `AWS/AmazonMQ`, a trailing `-<digits>` is removed from `Broker` values.
- In `AWS/SageMaker`, `EndpointName` values are lower-cased.

The helpers `build_labels_map` and `contains_all` are public as well.

### `cwscrape.discovery`

`run_discovery_job(job, region, tagging_client, cloudwatch_client, processor, logger=None)`
runs one job in four steps:

1. It calls `tagging_client.get_resources(job, region)`.
2. It lists metrics for every `MetricConfig` of the job, all concurrently, through
   `get_metric_data_for_queries`.
3. It filters and associates them with `get_filtered_metric_datas`.
4. It passes the resulting requests to `processor.run(namespace, requests)`.

It returns `(resources, data)`. Errors raised by the clients or the processor are logged,
and `([], [])` is returned. If no requests came out of listing, it returns
`(resources, [])`.

`get_filtered_metric_datas` behaves as follows:

- A metric is dropped when `dimension_names` is given and the metric does not have exactly
  those dimension names.
- A metric is dropped when the associator says to skip it.
- Every remaining metric yields one `CloudwatchData` per configured statistic.
- A metric without a resource gets the resource name `"global"`.

When the job has no `dimensions_regexps`, or no resources were found, `NopAssociator` is
used. It keeps every metric and attributes none.

### `cwscrape.iterator`

`IteratorFactory(metrics_per_query).build(requests)` chooses a batching iterator:

- For no requests, it returns `NothingToIterate`.
- When all requests share one period and one delay, it returns a `SimpleBatchIterator`.
- Otherwise it returns a `TimeParameterBatchingIterator`, which holds one simple iterator
  for each period/delay pair.

Each batch carries a `StartAndEndTimeParams`. Its length is the longest length found for
that period and delay. Every iterator offers `has_more()` and `next_batch()`, and it can
also be iterated directly in a `for` loop. The module also exposes
`map_processing_params` and `varying_time_parameter_iterator`.

### `cwscrape.windowcalculator`

`MetricWindowCalculator(clock).calculate(period, length, delay)` takes `timedelta`
arguments. It computes the window as follows:

1. If `period` is positive, it subtracts half the period from "now".
2. It then rounds that time to the nearest multiple of the period.
3. It returns `(now - length - delay, now - delay)`.

`SystemClock` supplies UTC wall-clock time. Any object with a `now()` method can serve as
the clock. `format_time` renders a datetime as RFC 3339.

### `cwscrape.processor`

`GetMetricDataProcessor(client, concurrency, window_calculator, factory, logger=None)` runs
the batches on a thread pool with `concurrency` workers:

- Each entry of a batch gets the query ID `id_0`, `id_1`, and so on.
- The client's results are mapped back by ID. The first result for an ID wins.
- Results with unknown IDs are logged and ignored.
- An entry that receives a result has its processing parameters cleared.
- `run` removes, in place, every request that received no result, and returns the list.

`default_processor(client, metrics_per_query, concurrency, logger=None)` builds a processor
with `SystemClock` and `IteratorFactory`. `index_to_query_id` and `query_id_to_index`
convert between indexes and IDs. `query_id_to_index` raises `ValueError` for a malformed
ID.

## Clients you provide

The package makes no API calls of its own. It calls objects you pass in:

- **Tagging client:** `get_resources(job, region)` returns a list of `TaggedResource`.
- **Metrics-listing client:** `list_metrics(namespace, metric_config,
  recently_active_only, on_page)` calls `on_page` with each page, given as a list of
  `Metric`.
- **Metric-data client:** `get_metric_data(batch, namespace, start_time, end_time)` returns
  a list of `MetricDataResult`, or `None` when nothing came back.

## Example

```python
from cwscrape.model import CloudwatchData, GetMetricDataProcessingParams, MetricDataResult
from cwscrape.processor import default_processor


class Client:
    def get_metric_data(self, batch, namespace, start_time, end_time):
        return [
            MetricDataResult(
                id=entry.get_metric_data_processing_params.query_id,
                datapoint=1.0,
                timestamp=end_time,
            )
            for entry in batch
        ]


requests = [
    CloudwatchData(
        metric_name="CPUUtilization",
        namespace="AWS/EC2",
        get_metric_data_processing_params=GetMetricDataProcessingParams(
            period=60, length=300, delay=0, statistic="Average"
        ),
    )
]

processor = default_processor(Client(), metrics_per_query=500, concurrency=4)
for data in processor.run("AWS/EC2", requests):
    print(data.metric_name, data.get_metric_data_result.datapoint)
```

## What it does not do

The package is a library only. It has none of the following:

- No command-line program.
- No HTTP endpoint that exposes metrics.
- No loading of configuration files.
- No built-in AWS clients.
- No table of per-service ARN regexes. You build the `DimensionsRegexp` values for each
  namespace yourself.

## Running the tests

```
pip install -e .[test]
pytest
```