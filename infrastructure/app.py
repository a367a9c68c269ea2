#!/usr/bin/env python3
"""
CDK application entry point.

Run `cdk synth` from the project root: cdk.json puts src/ on PYTHONPATH so the
stack can import the service package. Without cdk.json, install the project
first with `pip install -e ".[infra]"`.
"""

import os

from aws_cdk import App, Environment

from infrastructure.backend_stack import BackendStack


def main() -> None:
    app = App()

    BackendStack(
        app,
        'BackendStack',
        env=Environment(
            account=os.getenv('CDK_DEFAULT_ACCOUNT'),
            region=os.getenv('CDK_DEFAULT_REGION', 'ap-southeast-2'),
        ),
    )

    app.synth()


if __name__ == '__main__':
    main()
