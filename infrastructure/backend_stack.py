"""
Backend stack: per-channel SQS queues with dead-letter queues, Python consumer
functions fed by SQS event sources, and a REST API that enqueues request bodies.

Queue and event source settings come from QueueTopology so that the deployed
resources and the local queue simulation share one definition.
"""

from pathlib import Path
from typing import Dict, Iterable

from aws_cdk import (
    BundlingOptions,
    CfnOutput,
    Duration,
    Stack,
    aws_apigateway as apigw,
    aws_lambda as lambda_,
    aws_lambda_event_sources as lambda_event_sources,
    aws_sqs as sqs,
)
from constructs import Construct

from service.models.message import API_GATEWAY_SOURCE
from service.models.queue_topology import CHANNELS, DEFAULT_TOPOLOGY, QueueTopology

SOURCE_DIR = Path(__file__).resolve().parents[1] / 'src'
RUNTIME = lambda_.Runtime.PYTHON_3_12


def construct_name(channel: str) -> str:
    """sample-lambda-1 -> SampleLambda1"""
    return ''.join(part.capitalize() for part in channel.split('-'))


def handler_module(channel: str) -> str:
    """sample-lambda-1 -> sample_lambda_1"""
    return channel.replace('-', '_')


class BackendStack(Stack):
    """
    CDK Stack for API ingestion into SQS with batch consumers.

    This stack creates, for every ingestion channel:
    - a dead letter queue with extended retention
    - a primary queue with a redrive policy
    - a consumer function with an SQS event source reporting batch item failures
    and, once:
    - an ingest function allowed to send to every primary queue
    - a REST API exposing POST /api/<channel>
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        topology: QueueTopology = DEFAULT_TOPOLOGY,
        channels: Iterable[str] = CHANNELS,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.topology = topology
        self.channels = tuple(channels)
        self.code = self._create_code_asset()

        self.dead_letter_queues: Dict[str, sqs.Queue] = {}
        self.queues: Dict[str, sqs.Queue] = {}
        self.consumers: Dict[str, lambda_.Function] = {}

        for channel in self.channels:
            self.dead_letter_queues[channel] = self._create_dead_letter_queue(channel)
            self.queues[channel] = self._create_queue(channel)
            self.consumers[channel] = self._create_consumer(channel)

        self.ingest_function = self._create_ingest_function()
        self.api = self._create_api()

        self._create_outputs()

    def _create_code_asset(self) -> lambda_.Code:
        # Handlers and the shared service package ship together; dependencies
        # are installed into the asset from src/requirements.txt
        return lambda_.Code.from_asset(
            str(SOURCE_DIR),
            exclude=['**/__pycache__', '*.pyc'],
            bundling=BundlingOptions(
                image=RUNTIME.bundling_image,
                command=[
                    'bash', '-c',
                    'pip install -r requirements.txt -t /asset-output && cp -au . /asset-output',
                ],
            ),
        )

    def _create_dead_letter_queue(self, channel: str) -> sqs.Queue:
        return sqs.Queue(
            self,
            f'{construct_name(channel)}DLQ',
            queue_name=self.topology.dead_letter_queue_name(channel),
            retention_period=Duration.seconds(self.topology.dead_letter_retention_period_seconds),
        )

    def _create_queue(self, channel: str) -> sqs.Queue:
        return sqs.Queue(
            self,
            f'{construct_name(channel)}Queue',
            queue_name=self.topology.queue_name(channel),
            visibility_timeout=Duration.seconds(self.topology.visibility_timeout_seconds),
            retention_period=Duration.seconds(self.topology.retention_period_seconds),
            dead_letter_queue=sqs.DeadLetterQueue(
                queue=self.dead_letter_queues[channel],
                max_receive_count=self.topology.max_receive_count,
            ),
        )

    def _create_consumer(self, channel: str) -> lambda_.Function:
        queue = self.queues[channel]
        function = lambda_.Function(
            self,
            f'{construct_name(channel)}Handler',
            runtime=RUNTIME,
            handler=f'{handler_module(channel)}.lambda_function.lambda_handler',
            code=self.code,
            timeout=Duration.seconds(self.topology.consumer_timeout_seconds),
            tracing=lambda_.Tracing.ACTIVE,
            environment={
                'QUEUE_URL': queue.queue_url,
                'POWERTOOLS_SERVICE_NAME': channel,
                'LOG_LEVEL': 'INFO',
            },
        )

        queue.grant_consume_messages(function)
        function.add_event_source(lambda_event_sources.SqsEventSource(
            queue,
            batch_size=self.topology.batch_size,
            max_batching_window=Duration.seconds(self.topology.max_batching_window_seconds),
            report_batch_item_failures=True,
        ))
        return function

    def _create_ingest_function(self) -> lambda_.Function:
        function = lambda_.Function(
            self,
            'IngestHandler',
            runtime=RUNTIME,
            handler='ingest.lambda_function.lambda_handler',
            code=self.code,
            timeout=Duration.seconds(10),
            tracing=lambda_.Tracing.ACTIVE,
            environment={
                'QUEUE_URLS': self.to_json_string({
                    channel: queue.queue_url for channel, queue in self.queues.items()
                }),
                'MESSAGE_SOURCE': API_GATEWAY_SOURCE,
                'POWERTOOLS_SERVICE_NAME': 'ingest',
                'LOG_LEVEL': 'INFO',
            },
        )

        for queue in self.queues.values():
            queue.grant_send_messages(function)
        return function

    def _create_api(self) -> apigw.RestApi:
        api = apigw.RestApi(
            self,
            'Api',
            rest_api_name='Serverless API with SQS',
            description='API Gateway ingesting request bodies into SQS queues',
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=apigw.Cors.ALL_ORIGINS,
                allow_methods=apigw.Cors.ALL_METHODS,
            ),
        )

        integration = apigw.LambdaIntegration(self.ingest_function)
        api_resource = api.root.add_resource('api')
        for channel in self.channels:
            api_resource.add_resource(channel).add_method('POST', integration)
        return api

    def _create_outputs(self) -> None:
        for channel in self.channels:
            name = construct_name(channel)
            CfnOutput(
                self,
                f'{name}QueueUrl',
                value=self.queues[channel].queue_url,
                description=f'SQS Queue URL for {channel}',
            )
            CfnOutput(
                self,
                f'{name}DeadLetterQueueUrl',
                value=self.dead_letter_queues[channel].queue_url,
                description=f'Dead letter queue URL for {channel}',
            )

        CfnOutput(self, 'ApiUrl', value=self.api.url, description='Base URL of the ingestion API')
