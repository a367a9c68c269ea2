"""
AWS CDK definitions for the queue-backed backend.
"""
