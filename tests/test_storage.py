import io

import pandas as pd

from adapters import LocalStorageAdapter, S3StorageAdapter


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client methods the adapter uses."""

    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body):
        self.objects[(Bucket, Key)] = bytes(Body)

    def get_object(self, Bucket, Key):
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def list_objects_v2(self, Bucket, Prefix, MaxKeys=1000):
        keys = sorted(k for b, k in self.objects if b == Bucket and k.startswith(Prefix))
        return {"Contents": [{"Key": k} for k in keys[:MaxKeys]]}

    def get_paginator(self, name):
        client = self

        class _Paginator:
            def paginate(self, Bucket, Prefix):
                yield client.list_objects_v2(Bucket=Bucket, Prefix=Prefix)

        return _Paginator()


def test_local_round_trip(tmp_path):
    storage = LocalStorageAdapter(tmp_path)
    df = pd.DataFrame({"region_id": ["A", "B"], "growth_rate": [0.01, 0.02]})

    location = storage.write_raw("raw/dose/file.csv", b"a,b\n1,2\n")
    storage.write_parquet(df, "curated/x/data.parquet")
    storage.write_csv(df, "analytics/out.csv")

    assert location == str(tmp_path / "raw" / "dose" / "file.csv")
    assert storage.read_raw("raw/dose/file.csv") == b"a,b\n1,2\n"
    pd.testing.assert_frame_equal(storage.read_parquet("curated/x/data.parquet"), df)
    pd.testing.assert_frame_equal(storage.read_csv("analytics/out.csv"), df)
    assert storage.list_keys("raw") == ["raw/dose/file.csv"]
    assert storage.list_keys("missing") == []


def test_s3_keys_use_base_prefix():
    client = FakeS3Client()
    storage = S3StorageAdapter("bucket", base_prefix="dose-convergence/", boto3_client=client)
    df = pd.DataFrame({"region_id": ["A"], "growth_rate": [0.5]})

    location = storage.write_parquet(df, "curated/data.parquet")
    storage.write_raw("raw/dose/file.csv", b"x")

    assert location == "s3://bucket/dose-convergence/curated/data.parquet"
    assert ("bucket", "dose-convergence/raw/dose/file.csv") in client.objects
    assert storage.list_keys("raw") == ["raw/dose/file.csv"]
    pd.testing.assert_frame_equal(storage.read_parquet("curated/data.parquet"), df)


def test_s3_without_prefix():
    client = FakeS3Client()
    storage = S3StorageAdapter("bucket", boto3_client=client)

    storage.write_csv(pd.DataFrame({"a": [1]}), "analytics/a.csv")

    assert storage.read_csv("analytics/a.csv")["a"].tolist() == [1]
    assert storage.list_keys("analytics") == ["analytics/a.csv"]
