from __future__ import annotations

import io
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd


class StorageAdapter(ABC):
    """
    Storage backend for the pipeline layers (raw/, processed/, curated/, analytics/).

    Keys are logical, slash-separated paths such as
    "raw/dose/DOSE_V2.10.csv"; each implementation maps them to a
    physical location and returns that location from the write methods.
    """

    @abstractmethod
    def write_raw(self, key: str, content: bytes) -> str:
        """Store bytes under `key`, returning the physical location."""

    @abstractmethod
    def read_raw(self, key: str) -> bytes:
        """Return the bytes stored under `key`."""

    @abstractmethod
    def list_keys(self, prefix: str) -> List[str]:
        """List logical keys below `prefix`."""

    def write_parquet(self, df: pd.DataFrame, key: str) -> str:
        buffer = io.BytesIO()
        df.to_parquet(buffer, index=False)
        return self.write_raw(key, buffer.getvalue())

    def read_parquet(self, key: str) -> pd.DataFrame:
        return pd.read_parquet(io.BytesIO(self.read_raw(key)))

    def write_csv(self, df: pd.DataFrame, key: str) -> str:
        buffer = io.StringIO()
        df.to_csv(buffer, index=False)
        return self.write_raw(key, buffer.getvalue().encode("utf-8"))

    def read_csv(self, key: str, **kwargs) -> pd.DataFrame:
        return pd.read_csv(io.BytesIO(self.read_raw(key)), **kwargs)


class LocalStorageAdapter(StorageAdapter):
    """
    Filesystem storage: keys are paths relative to `root_dir`.

        LocalStorageAdapter("out").write_raw("raw/dose/x.csv", b"...")
        -> out/raw/dose/x.csv
    """

    def __init__(self, root_dir: Path | str = ".") -> None:
        self.root_dir = Path(root_dir)

    def _path(self, key: str) -> Path:
        return self.root_dir / key.lstrip("/")

    def write_raw(self, key: str, content: bytes) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)

    def read_raw(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def write_parquet(self, df: pd.DataFrame, key: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_parquet(path, index=False)
        return str(path)

    def read_parquet(self, key: str) -> pd.DataFrame:
        return pd.read_parquet(self._path(key))

    def list_keys(self, prefix: str) -> List[str]:
        base = self._path(prefix)
        if not base.exists():
            return []
        return sorted(
            str(path.relative_to(self.root_dir)).replace(os.sep, "/")
            for path in base.rglob("*")
            if path.is_file()
        )


class S3StorageAdapter(StorageAdapter):
    """
    S3 storage through boto3.

    Keys are written below `base_prefix` inside `bucket`; `list_keys`
    strips the prefix again so callers only ever see logical keys.
    """

    def __init__(
        self,
        bucket: str,
        *,
        base_prefix: Optional[str] = None,
        boto3_client=None,
    ) -> None:
        if boto3_client is None:
            import boto3  # only needed for cloud runs

            boto3_client = boto3.client("s3")

        self.bucket = bucket
        self.base_prefix = (base_prefix or "").strip("/")
        self._s3 = boto3_client

    def _full_key(self, key: str) -> str:
        key = key.lstrip("/")
        return f"{self.base_prefix}/{key}" if self.base_prefix else key

    def _logical_key(self, full_key: str) -> str:
        if self.base_prefix and full_key.startswith(self.base_prefix + "/"):
            return full_key[len(self.base_prefix) + 1:]
        return full_key

    def write_raw(self, key: str, content: bytes) -> str:
        full_key = self._full_key(key)
        self._s3.put_object(Bucket=self.bucket, Key=full_key, Body=content)
        return f"s3://{self.bucket}/{full_key}"

    def read_raw(self, key: str) -> bytes:
        resp = self._s3.get_object(Bucket=self.bucket, Key=self._full_key(key))
        return resp["Body"].read()

    def list_keys(self, prefix: str) -> List[str]:
        full_prefix = self._full_key(prefix).rstrip("/") + "/"
        paginator = self._s3.get_paginator("list_objects_v2")
        keys: List[str] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=full_prefix):
            contents: Iterable[dict] = page.get("Contents") or []
            keys.extend(self._logical_key(obj["Key"]) for obj in contents)
        return keys
