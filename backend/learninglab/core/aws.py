"""
Shared aioboto3 plumbing for every AWS capability (S3, Textract, Transcribe,
Rekognition). Each service object owns one Session and opens a short-lived
client per call, the same way the S3 adapter does.
"""

from __future__ import annotations

import aioboto3
from botocore.config import Config

from learninglab.core.config import settings


def client_config() -> Config:
    """Bounded connect/read timeouts plus standard-mode retries."""
    return Config(
        region_name=settings.aws_region,
        connect_timeout=settings.aws_connect_timeout_seconds,
        read_timeout=settings.aws_read_timeout_seconds,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def new_session() -> aioboto3.Session:
    # Local dev: static keys from settings; prod: task role (keys left empty)
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        return aioboto3.Session(
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
    return aioboto3.Session(region_name=settings.aws_region)
