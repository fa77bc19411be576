"""
RAW ingestion of the DOSE dataset (sub-national GDP per capita).

DOSE is published as a single CSV on Zenodo. This module downloads it,
stores the bytes in the RAW layer and reads it back into a pandas
DataFrame. Storage is injected so the same code runs locally and on S3.
"""

from __future__ import annotations

import hashlib
import io
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlparse

import pandas as pd

from adapters import StorageAdapter
from common.retry import http_get_with_retries
from env_loader import load_dotenv_if_present
from transformations.dose_panel import build_dose_panel

# Carrega .env se existir (DOSE_SOURCE_URL, entre outros).
load_dotenv_if_present()

DEFAULT_DOSE_SOURCE_URL = "https://zenodo.org/records/13773040/files/DOSE_V2.10.csv"
DOSE_SOURCE_URL = os.getenv("DOSE_SOURCE_URL", DEFAULT_DOSE_SOURCE_URL)

RAW_BASE_PREFIX = "raw/dose"


def is_url(source: str) -> bool:
    """Whether `source` is an http(s) URL rather than a key or a path."""
    return urlparse(source).scheme in ("http", "https")


def _file_name_from_url(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "dose.csv"


def compute_content_hash(content: bytes) -> str:
    """SHA-1 of the downloaded file, kept next to the RAW key for traceability."""
    return hashlib.sha1(content).hexdigest()


def download_dose_csv(url: str = DOSE_SOURCE_URL, *, timeout: int = 120) -> bytes:
    """Fetch the DOSE CSV, retrying transient HTTP failures."""
    response = http_get_with_retries(url, timeout=timeout)
    response.raise_for_status()
    content = response.content
    if not content:
        raise RuntimeError(f"Empty response body when downloading DOSE from {url}")
    return content


def ingest_dose_raw(
    storage: StorageAdapter,
    *,
    url: str = DOSE_SOURCE_URL,
    timeout: int = 120,
) -> str:
    """
    Download DOSE and persist it in the RAW layer.

    Returns the logical key, e.g.
    "raw/dose/20240101T000000Z_DOSE_V2.10.csv".
    """
    content = download_dose_csv(url, timeout=timeout)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    key = f"{RAW_BASE_PREFIX}/{timestamp}_{_file_name_from_url(url)}"
    location = storage.write_raw(key, content)
    print(
        f"[dose] stored {len(content)} bytes from {url} at {location} "
        f"(sha1={compute_content_hash(content)[:12]})"
    )
    return key


def read_dose_csv(
    source: str | Path = DOSE_SOURCE_URL,
    *,
    storage: Optional[StorageAdapter] = None,
    timeout: int = 120,
) -> pd.DataFrame:
    """
    Read a RAW DOSE CSV.

    `source` is an http(s) URL, a key in `storage` (when a storage adapter
    is given), or a local file path.
    """
    source_str = str(source)
    if is_url(source_str):
        content = download_dose_csv(source_str, timeout=timeout)
        return pd.read_csv(io.BytesIO(content), low_memory=False)
    if storage is not None:
        return storage.read_csv(source_str, low_memory=False)

    path = Path(source_str)
    if not path.exists():
        raise FileNotFoundError(f"DOSE file not found: {path}")
    return pd.read_csv(path, low_memory=False)


def get_dose(
    years: Optional[Iterable[int]] = None,
    countries: Optional[Iterable[str]] = None,
    *,
    source: str | Path = DOSE_SOURCE_URL,
    storage: Optional[StorageAdapter] = None,
) -> pd.DataFrame:
    """
    Return the DOSE panel (PROCESSED schema) for the requested years and
    countries (ISO3). No filtering beyond years/countries is applied.
    """
    raw_df = read_dose_csv(source, storage=storage)
    return build_dose_panel(raw_df, years=years, countries=countries)


__all__ = [
    "DEFAULT_DOSE_SOURCE_URL",
    "DOSE_SOURCE_URL",
    "RAW_BASE_PREFIX",
    "compute_content_hash",
    "download_dose_csv",
    "get_dose",
    "is_url",
    "ingest_dose_raw",
    "read_dose_csv",
]
