"""
Consumer Handler - Lambda functions draining the SQS queues in batches.

Each record of a batch is processed independently by a MessageProcessor through
the Powertools batch processor. The handler returns a partial batch failure
report so that only the failed records are redelivered; an empty list
acknowledges the whole batch.
"""

from typing import Any, Callable, Dict, List, Optional

from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.batch import BatchProcessor, EventType
from aws_lambda_powertools.utilities.typing import LambdaContext

from service.handlers.utils.observability import logger, metrics, tracer
from service.logic.message_processor import MessageProcessor
from service.models.output import BatchReport

LambdaHandler = Callable[[Dict[str, Any], LambdaContext], Dict[str, Any]]


@tracer.capture_method
def consume_batch(
    event: Dict[str, Any],
    message_processor: MessageProcessor,
    context: Optional[LambdaContext] = None,
) -> Dict[str, Any]:
    """
    Process every record of an SQS event and report the failed ones.

    A failure outside the per-record processing cannot be attributed to a
    single record, so every identifier of the batch is reported as failed
    instead of relying on the absence of a report.

    Raises:
        ValueError: If the event carries no Records list
    """
    records = event.get('Records') if isinstance(event, dict) else None
    if not isinstance(records, list):
        raise ValueError('Invalid event format: expected an SQS event with a Records list')

    try:
        batch_processor = BatchProcessor(event_type=EventType.SQS, raise_on_entire_batch_failure=False)
        with batch_processor(records=records, handler=message_processor.process_record, lambda_context=context):
            processed = batch_processor.process()
        report = BatchReport.model_validate(batch_processor.response())
    except Exception:
        message_ids = _message_ids(records)
        logger.exception('Batch processing failed outside record handling, failing whole batch', extra={
            'message_ids': message_ids,
        })
        metrics.add_metric(name='BatchInvocationFailed', unit=MetricUnit.Count, value=1)
        return BatchReport.all_failed(message_ids).to_response()

    succeeded = sum(1 for status, _, _ in processed if status == 'success')
    failed = len(report.batch_item_failures)

    metrics.add_metric(name='MessageProcessed', unit=MetricUnit.Count, value=succeeded)
    metrics.add_metric(name='MessageFailed', unit=MetricUnit.Count, value=failed)

    logger.info(f'Processed {len(records)} messages from {message_processor.processed_by}', extra={
        'succeeded': succeeded,
        'failed': failed,
        'failed_message_ids': report.failed_identifiers,
    })

    return report.to_response()


def make_lambda_handler(message_processor: MessageProcessor, queue_url: Optional[str] = None) -> LambdaHandler:
    """
    Build a decorated SQS consumer Lambda handler around a message processor.

    When queue_url is given it is attached to every log line of the consumer.
    """
    if queue_url:
        logger.append_keys(queue_url=queue_url)

    @metrics.log_metrics(capture_cold_start_metric=True)
    @tracer.capture_lambda_handler
    @logger.inject_lambda_context
    def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
        logger.info('Batch received', extra={
            'record_count': len(event.get('Records') or []) if isinstance(event, dict) else 0,
            'processed_by': message_processor.processed_by,
        })
        return consume_batch(event, message_processor, context)

    return lambda_handler


def _message_ids(records: List[Any]) -> List[str]:
    return [
        record['messageId']
        for record in records
        if isinstance(record, dict) and record.get('messageId')
    ]
