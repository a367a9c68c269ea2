"""
Minimal Lambda context used when handlers are invoked in-process.
"""

import time
import uuid
from dataclasses import dataclass, field


@dataclass
class LocalLambdaContext:
    """Stand-in for the Lambda runtime context object."""

    function_name: str = 'local-function'
    function_version: str = '$LATEST'
    memory_limit_in_mb: int = 128
    timeout_seconds: int = 30
    aws_request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    invoked_function_arn: str = ''
    log_group_name: str = ''
    log_stream_name: str = 'local'
    _started: float = field(default_factory=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        if not self.invoked_function_arn:
            self.invoked_function_arn = f'arn:aws:lambda:local:000000000000:function:{self.function_name}'
        if not self.log_group_name:
            self.log_group_name = f'/aws/lambda/{self.function_name}'

    def get_remaining_time_in_millis(self) -> int:
        elapsed = time.monotonic() - self._started
        return max(0, int((self.timeout_seconds - elapsed) * 1000))
