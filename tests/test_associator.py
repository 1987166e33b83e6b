import io
import logging
import re

import pytest

from cwscrape.associator import Associator, build_labels_map, contains_all
from cwscrape.model import Dimension, DimensionsRegexp, Metric, TaggedResource


def _regexps(*specs):
    return [DimensionsRegexp(regexp=re.compile(p), dimensions_names=list(n)) for p, n in specs]


EC2_REGEXPS = _regexps((r"instance/([^/]+)", ["InstanceId"]))
ECS_REGEXPS = _regexps(
    (r":cluster/([^/]+)$", ["ClusterName"]),
    (r":service/([^/]+)/([^/]+)$", ["ClusterName", "ServiceName"]),
)
LOGS_REGEXPS = _regexps((r":log-group:(.+)", ["LogGroupName"]))
MQ_REGEXPS = _regexps((r"broker:([^:]+)", ["Broker"]))
SAGEMAKER_REGEXPS = _regexps((r":endpoint/([^/]+)", ["EndpointName"]))

ec2_instance1 = TaggedResource(arn="arn:aws:ec2:us-east-1:123456789012:instance/i-abc123", namespace="AWS/EC2")
ec2_instance2 = TaggedResource(arn="arn:aws:ec2:us-east-1:123456789012:instance/i-def456", namespace="AWS/EC2")
ec2_resources = [ec2_instance1, ec2_instance2]

ecs_cluster = TaggedResource(arn="arn:aws:ecs:af-south-1:123456789222:cluster/sampleCluster", namespace="AWS/ECS")
ecs_service1 = TaggedResource(arn="arn:aws:ecs:af-south-1:123456789222:service/sampleCluster/service1", namespace="AWS/ECS")
ecs_service2 = TaggedResource(arn="arn:aws:ecs:af-south-1:123456789222:service/sampleCluster/service2", namespace="AWS/ECS")
ecs_resources = [ecs_cluster, ecs_service1, ecs_service2]

log_group1 = TaggedResource(arn="arn:aws:logs:eu-central-1:123456789012:log-group:/aws/lambda/log-group-1", namespace="AWS/Logs")
log_group2 = TaggedResource(arn="arn:aws:logs:eu-central-1:123456789012:log-group:/custom/log-group-2", namespace="AWS/Logs")
log_group_resources = [log_group1, log_group2]

rabbit_mq_broker = TaggedResource(arn="arn:aws:mq:us-east-2:123456789012:broker:rabbitmq-broker:b-000-111-222-333", namespace="AWS/AmazonMQ")
active_mq_broker = TaggedResource(arn="arn:aws:mq:us-east-2:123456789012:broker:activemq-broker:b-000-111-222-333", namespace="AWS/AmazonMQ")

sm_one = TaggedResource(arn="arn:aws:sagemaker:us-west-2:123456789012:endpoint/example-endpoint-one", namespace="AWS/SageMaker")
sm_two = TaggedResource(arn="arn:aws:sagemaker:us-west-2:123456789012:endpoint/example-endpoint-two", namespace="AWS/SageMaker")
sm_upper = TaggedResource(arn="arn:aws:sagemaker:us-west-2:123456789012:endpoint/example-endpoint-upper", namespace="AWS/SageMaker")
sm_resources = [sm_one, sm_two, sm_upper]


def _metric(namespace, name, *dims):
    return Metric(metric_name=name, namespace=namespace, dimensions=[Dimension(n, v) for n, v in dims])


CASES = [
    # EC2
    (EC2_REGEXPS, ec2_resources, _metric("AWS/EC2", "CPUUtilization", ("InstanceId", "i-abc123")), False, ec2_instance1),
    (EC2_REGEXPS, ec2_resources, _metric("AWS/EC2", "CPUUtilization", ("InstanceId", "i-def456")), False, ec2_instance2),
    (EC2_REGEXPS, ec2_resources, _metric("AWS/EC2", "CPUUtilization", ("InstanceId", "i-blahblah")), True, None),
    (EC2_REGEXPS, ec2_resources, _metric("AWS/EC2", "StatusCheckFailed_System", ("AutoScalingGroupName", "some-asg-name")), False, None),
    # ECS
    (ECS_REGEXPS, ecs_resources, _metric("AWS/ECS", "MemoryReservation", ("ClusterName", "sampleCluster")), False, ecs_cluster),
    (ECS_REGEXPS, ecs_resources, _metric("AWS/ECS", "CPUUtilization", ("ClusterName", "sampleCluster"), ("ServiceName", "service1")), False, ecs_service1),
    (ECS_REGEXPS, ecs_resources, _metric("AWS/ECS", "CPUUtilization", ("ClusterName", "sampleCluster"), ("ServiceName", "service2")), False, ecs_service2),
    # Logs
    (LOGS_REGEXPS, log_group_resources, _metric("AWS/Logs", "DeliveryThrottling", ("LogGroupName", "/aws/lambda/log-group-1")), False, log_group1),
    (LOGS_REGEXPS, log_group_resources, _metric("AWS/Logs", "IncomingBytes", ("LogGroupName", "/custom/log-group-2")), False, log_group2),
    (LOGS_REGEXPS, log_group_resources, _metric("AWS/Logs", "ForwardingLogEvents", ("LogGroupName", "/custom/nonexisting/log-group-3")), True, None),
    # AmazonMQ
    (MQ_REGEXPS, [rabbit_mq_broker], _metric("AWS/AmazonMQ", "ProducerCount", ("Broker", "rabbitmq-broker")), False, rabbit_mq_broker),
    (MQ_REGEXPS, [active_mq_broker], _metric("AWS/AmazonMQ", "ProducerCount", ("Broker", "activemq-broker-1")), False, active_mq_broker),
    # SageMaker
    (SAGEMAKER_REGEXPS, sm_resources, _metric("AWS/SageMaker", "Invocations", ("EndpointName", "example-endpoint-one"), ("VariantName", "example-endpoint-one-variant-one"), ("EndpointConfigName", "example-endpoint-one-endpoint-config")), False, sm_one),
    (SAGEMAKER_REGEXPS, sm_resources, _metric("AWS/SageMaker", "Invocations", ("EndpointName", "example-endpoint-two"), ("VariantName", "example-endpoint-two-variant-one")), False, sm_two),
    (SAGEMAKER_REGEXPS, sm_resources, _metric("AWS/SageMaker", "Invocations", ("EndpointName", "example-endpoint-three"), ("VariantName", "example-endpoint-three-variant-one")), True, None),
    (SAGEMAKER_REGEXPS, sm_resources, _metric("AWS/SageMaker", "ModelLatency", ("EndpointName", "Example-Endpoint-Upper"), ("VariantName", "example-endpoint-two-variant-one")), False, sm_upper),
]


@pytest.mark.parametrize("regexps, resources, metric, expected_skip, expected_resource", CASES)
def test_associate_metric_to_resource(regexps, resources, metric, expected_skip, expected_resource):
    associator = Associator(regexps, resources)
    resource, skip = associator.associate_metric_to_resource(metric)
    assert skip == expected_skip
    assert resource is expected_resource


def test_metric_without_dimensions_is_kept():
    associator = Associator(EC2_REGEXPS, ec2_resources)
    assert associator.associate_metric_to_resource(_metric("AWS/EC2", "Foo")) == (None, False)


@pytest.mark.parametrize("level, expect_found", [(logging.DEBUG, True), (logging.INFO, False)])
def test_associator_logging(level, expect_found):
    stream = io.StringIO()
    logger = logging.getLogger(f"cwscrape.test.associator.{level}")
    handler = logging.StreamHandler(stream)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    try:
        associator = Associator(LOGS_REGEXPS, log_group_resources, logger)
        resource, skip = associator.associate_metric_to_resource(
            _metric("AWS/Logs", "DeliveryThrottling", ("LogGroupName", "/aws/lambda/log-group-1"))
        )
    finally:
        logger.removeHandler(handler)
    assert resource is log_group1
    assert skip is False
    assert ("found mapping" in stream.getvalue()) is expect_found


def test_contains_all():
    assert contains_all(["a", "b", "c"], ["c", "a"]) is True
    assert contains_all(["a"], ["a", "b"]) is False
    assert contains_all([], []) is True


def test_build_labels_map_strips_mq_suffix():
    metric = _metric("AWS/AmazonMQ", "X", ("Broker", "broker-12"), ("Other", "v"))
    assert build_labels_map(metric, ["Broker"]) == {"Broker": "broker"}


def test_build_labels_map_lowers_sagemaker_endpoint():
    metric = _metric("AWS/SageMaker", "X", ("EndpointName", "MyEndPoint"), ("VariantName", "Var"))
    assert build_labels_map(metric, ["EndpointName", "VariantName"]) == {
        "EndpointName": "myendpoint",
        "VariantName": "Var",
    }


def test_build_labels_map_leaves_other_namespaces():
    metric = _metric("AWS/EC2", "X", ("Broker", "broker-12"))
    assert build_labels_map(metric, ["Broker"]) == {"Broker": "broker-12"}