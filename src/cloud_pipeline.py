"""
Cloud orchestration entrypoint for the DOSE convergence pipeline.

Runs the same steps as `local_pipeline`, writing every layer to S3.

Environment variables
---------------------

- PIPELINE_S3_BUCKET
    Bucket receiving raw/, processed/, curated/ and analytics/.

- PIPELINE_S3_BASE_PREFIX (optional)
    Logical prefix under the bucket, e.g. "dose-convergence".

- DOSE_SOURCE_URL, CONVERGENCE_INITIAL_YEAR, CONVERGENCE_FINAL_YEAR
    (optional) override the dataset location and the target years.

Lambda handler
--------------

    Handler: cloud_pipeline.lambda_handler

Optional event payload:

    {"initial_year": 2000, "final_year": 2019, "countries": ["DEU", "FRA"]}
"""

from __future__ import annotations

import json
import os
from typing import Iterable, Optional

from adapters import S3StorageAdapter
from env_loader import load_dotenv_if_present
from ingestion_api.dose_ingestion import DOSE_SOURCE_URL
from local_pipeline import (
    DEFAULT_FINAL_YEAR,
    DEFAULT_INITIAL_YEAR,
    Artefacts,
    run_convergence_pipeline,
)

load_dotenv_if_present()

PIPELINE_S3_BUCKET_ENV = "PIPELINE_S3_BUCKET"
PIPELINE_S3_BASE_PREFIX_ENV = "PIPELINE_S3_BASE_PREFIX"


def build_s3_storage_from_env(boto3_client=None) -> S3StorageAdapter:
    bucket = os.getenv(PIPELINE_S3_BUCKET_ENV)
    if not bucket:
        raise RuntimeError(
            f"Missing required environment variable {PIPELINE_S3_BUCKET_ENV!r} for S3 bucket name.",
        )
    base_prefix = os.getenv(PIPELINE_S3_BASE_PREFIX_ENV) or None
    return S3StorageAdapter(bucket=bucket, base_prefix=base_prefix, boto3_client=boto3_client)


def run_cloud_pipeline(
    *,
    initial_year: int = DEFAULT_INITIAL_YEAR,
    final_year: int = DEFAULT_FINAL_YEAR,
    countries: Optional[Iterable[str]] = None,
    boto3_client=None,
) -> Artefacts:
    storage = build_s3_storage_from_env(boto3_client)
    return run_convergence_pipeline(
        storage,
        initial_year=initial_year,
        final_year=final_year,
        countries=countries,
        source=DOSE_SOURCE_URL,
        tag="cloud",
    )


def lambda_handler(event, context):  # pragma: no cover - AWS entrypoint
    event = event or {}
    artefacts = run_cloud_pipeline(
        initial_year=int(event.get("initial_year", DEFAULT_INITIAL_YEAR)),
        final_year=int(event.get("final_year", DEFAULT_FINAL_YEAR)),
        countries=event.get("countries"),
    )
    serialised = {key: [str(item) for item in values] for key, values in artefacts.items()}
    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "message": "Convergence pipeline executed successfully.",
                "artefacts": serialised,
            }
        ),
    }


__all__ = ["build_s3_storage_from_env", "run_cloud_pipeline", "lambda_handler"]
