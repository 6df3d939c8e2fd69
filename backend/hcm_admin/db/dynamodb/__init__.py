"""Shared DynamoDB utilities.

This package centralizes:
- boto3 client/resource configuration
- retry/backoff policy and botocore error mapping
- cursor pagination token encoding/decoding
- typed, expressive errors for consistent HTTP problem responses

"""
