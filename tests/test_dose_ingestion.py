import pytest

from adapters import LocalStorageAdapter
from ingestion_api import dose_ingestion
from ingestion_api.dose_ingestion import (
    RAW_BASE_PREFIX,
    compute_content_hash,
    get_dose,
    ingest_dose_raw,
    is_url,
    read_dose_csv,
)


class FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


@pytest.fixture
def fake_download(monkeypatch, dose_csv_bytes):
    urls = []

    def fake_get(url, **kwargs):
        urls.append(url)
        return FakeResponse(dose_csv_bytes)

    monkeypatch.setattr(dose_ingestion, "http_get_with_retries", fake_get)
    return urls


def test_ingest_stores_raw_bytes(tmp_path, fake_download, dose_csv_bytes):
    storage = LocalStorageAdapter(tmp_path)

    key = ingest_dose_raw(storage, url="https://zenodo.org/records/1/files/DOSE_V2.csv")

    assert key.startswith(f"{RAW_BASE_PREFIX}/")
    assert key.endswith("_DOSE_V2.csv")
    assert storage.read_raw(key) == dose_csv_bytes
    assert fake_download == ["https://zenodo.org/records/1/files/DOSE_V2.csv"]


def test_empty_download_raises(monkeypatch, tmp_path):
    monkeypatch.setattr(dose_ingestion, "http_get_with_retries", lambda url, **kw: FakeResponse(b""))

    with pytest.raises(RuntimeError, match="Empty response"):
        ingest_dose_raw(LocalStorageAdapter(tmp_path), url="https://example.org/dose.csv")


def test_http_errors_propagate(monkeypatch):
    monkeypatch.setattr(
        dose_ingestion, "http_get_with_retries", lambda url, **kw: FakeResponse(b"x", status_code=404)
    )

    with pytest.raises(RuntimeError, match="404"):
        read_dose_csv("https://example.org/dose.csv")


def test_read_from_url_storage_and_path(tmp_path, fake_download, dose_csv_bytes, raw_dose_df):
    path = tmp_path / "dose.csv"
    path.write_bytes(dose_csv_bytes)
    storage = LocalStorageAdapter(tmp_path)

    from_url = read_dose_csv("https://example.org/dose.csv")
    from_storage = read_dose_csv("dose.csv", storage=storage)
    from_path = read_dose_csv(path)

    for df in (from_url, from_storage, from_path):
        assert len(df) == len(raw_dose_df)
        assert {"GID_0", "GID_1", "grp_pc_usd", "pop"} <= set(df.columns)


def test_missing_local_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_dose_csv(tmp_path / "nope.csv")


def test_get_dose_returns_panel_for_years(tmp_path, dose_csv_bytes):
    path = tmp_path / "dose.csv"
    path.write_bytes(dose_csv_bytes)

    panel = get_dose(years=[2019], countries=["BRA", "KEN"], source=path)

    assert set(panel["year"]) == {2019}
    assert set(panel["country_id"]) == {"BRA", "KEN"}
    assert len(panel) == 2


def test_content_hash_is_stable():
    assert compute_content_hash(b"abc") == compute_content_hash(b"abc")
    assert compute_content_hash(b"abc") != compute_content_hash(b"abd")


@pytest.mark.parametrize(
    "source, expected",
    [
        ("https://zenodo.org/records/1/files/DOSE.csv", True),
        ("http://example.org/dose.csv", True),
        ("raw/dose/20240101T000000Z_DOSE.csv", False),
        ("/data/DOSE_V2.10.csv", False),
        ("s3://bucket/raw/dose.csv", False),
    ],
)
def test_is_url(source, expected):
    assert is_url(source) is expected
