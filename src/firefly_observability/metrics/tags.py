"""Standard tag keys and values (keys use lowercase.dots)."""

from __future__ import annotations


class MetricTags:
    # Keys
    STATUS = "status"
    ERROR_TYPE = "error.type"
    OPERATION = "operation"
    COMMAND_TYPE = "command.type"
    QUERY_TYPE = "query.type"
    EVENT_TYPE = "event.type"
    WORKFLOW_ID = "workflow.id"
    STEP_ID = "step.id"
    PROVIDER = "provider"
    DESTINATION = "destination"
    PUBLISHER_TYPE = "publisher.type"
    CONSUMER_TYPE = "consumer.type"
    TRANSACTION_TYPE = "transaction.type"
    AGGREGATE_TYPE = "aggregate.type"
    JOB_NAME = "job.name"
    JOB_STAGE = "job.stage"
    CLIENT_TYPE = "client.type"
    WEBHOOK_TYPE = "webhook.type"
    NOTIFICATION_TYPE = "notification.type"
    CHANNEL = "channel"

    # Values
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    # Common tags applied to every metric
    APPLICATION = "application"
    ENVIRONMENT = "environment"
