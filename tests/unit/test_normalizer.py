"""Unit tests for record normalization."""

import pytest

from adsync.extraction import RecordNormalizer, normalize

from ..fixtures.payloads import FIXED_NOW, PAGE_ID, FixedClock, make_ad


@pytest.fixture
def normalizer():
    return RecordNormalizer(clock=FixedClock())


class TestIdentity:
    """Tests for ad id and page id resolution."""

    def test_ad_archive_id_preferred(self, normalizer):
        """Test that ad_archive_id wins over id."""
        record = normalizer.normalize(make_ad("111", id="222"))
        assert record.id == "111"

    def test_falls_back_to_id(self, normalizer):
        """Test the id fallback when ad_archive_id is absent."""
        record = normalizer.normalize(make_ad(None, id="222"))
        assert record.id == "222"

    def test_empty_ad_archive_id_falls_back(self, normalizer):
        """Test that a blank primary id does not count as present."""
        record = normalizer.normalize(make_ad("", id="222"))
        assert record.id == "222"

    def test_whitespace_ad_archive_id_falls_back(self, normalizer):
        """Test that a whitespace-only primary id yields to the id fallback."""
        record = normalizer.normalize(make_ad("   ", id="222"))
        assert record.id == "222"

    def test_unusable_page_id_falls_back_to_snapshot(self, normalizer):
        """Test that a non-scalar page_id yields to the snapshot page id."""
        raw = make_ad("1", page_id={"id": PAGE_ID})
        raw["snapshot"]["page_id"] = PAGE_ID
        assert normalizer.normalize(raw).page_id == PAGE_ID

    def test_numeric_id_rendered_as_text(self, normalizer):
        """Test that unquoted numeric ids are accepted as strings."""
        record = normalizer.normalize(make_ad(None, id=123456789))
        assert record.id == "123456789"

    def test_page_id_from_snapshot(self, normalizer):
        """Test the snapshot page_id fallback."""
        raw = make_ad("1", page_id=None)
        raw["snapshot"]["page_id"] = PAGE_ID
        assert normalizer.normalize(raw).page_id == PAGE_ID

    @pytest.mark.parametrize(
        "raw",
        [
            make_ad(None),
            make_ad("1", page_id=None),
            make_ad("", page_id=""),
            make_ad("   "),
            make_ad(True),
            {"snapshot": None},
            {},
        ],
    )
    def test_missing_identity_rejected(self, normalizer, raw):
        """Test that ads without usable ids are rejected, never synthesized."""
        assert normalizer.normalize(raw) is None

    @pytest.mark.parametrize("raw", [None, "ad", 5, ["ad"]])
    def test_non_dict_rejected(self, normalizer, raw):
        """Test that non-object entries are rejected."""
        assert normalizer.normalize(raw) is None


class TestFields:
    """Tests for descriptive field resolution."""

    def test_is_active_preserved(self, normalizer):
        """Test that an explicit is_active flag is kept."""
        assert normalizer.normalize(make_ad("1", is_active=False)).is_active is False
        assert normalizer.normalize(make_ad("1", is_active=True)).is_active is True

    def test_is_active_defaults_true(self, normalizer):
        """Test that a missing or non-boolean is_active defaults to active."""
        raw = make_ad("1")
        del raw["is_active"]
        assert normalizer.normalize(raw).is_active is True
        assert normalizer.normalize(make_ad("1", is_active="no")).is_active is True

    def test_dates_preserved(self, normalizer):
        """Test that dates are kept exactly as provided."""
        record = normalizer.normalize(make_ad("1", start_date="2024-10-01", end_date="2024-12-01"))
        assert record.start_date == "2024-10-01"
        assert record.end_date == "2024-12-01"

    def test_epoch_dates_as_text(self, normalizer):
        """Test that epoch timestamps are rendered as text."""
        record = normalizer.normalize(make_ad("1", start_date=1736899200))
        assert record.start_date == "1736899200"

    def test_float_epoch_dates_as_text(self, normalizer):
        """Test that integral float timestamps render without a fraction."""
        record = normalizer.normalize(make_ad("1", start_date=1736899200.0, end_date=1736899200.5))
        assert record.start_date == "1736899200"
        assert record.end_date == "1736899200.5"

    def test_unusable_date_falls_back(self, normalizer):
        """Test that an unusable start_date yields to delivery_start_time."""
        raw = make_ad("1", start_date=float("nan"), end_date=True)
        raw["delivery_start_time"] = 1736899200
        raw["delivery_stop_time"] = "2024-02-01"
        record = normalizer.normalize(raw)
        assert record.start_date == "1736899200"
        assert record.end_date == "2024-02-01"

    def test_date_fallbacks(self, normalizer):
        """Test the delivery time fallbacks."""
        raw = make_ad("1", start_date=None, end_date=None)
        raw["delivery_start_time"] = "2024-01-01"
        raw["delivery_stop_time"] = "2024-02-01"
        record = normalizer.normalize(raw)
        assert record.start_date == "2024-01-01"
        assert record.end_date == "2024-02-01"

    def test_absent_end_date(self, normalizer):
        """Test that a running ad has no end date."""
        assert normalizer.normalize(make_ad("1")).end_date is None

    def test_snapshot_url(self, normalizer):
        """Test that snapshot_url is copied when it is a string."""
        assert normalizer.normalize(make_ad("1", snapshot_url="https://x/s")).snapshot_url == "https://x/s"
        assert normalizer.normalize(make_ad("1", snapshot_url=7)).snapshot_url is None
        assert normalizer.normalize(make_ad("1", snapshot_url="  ")).snapshot_url is None

    def test_creative_body_from_snapshot(self, normalizer):
        """Test that the snapshot body text becomes the only creative body."""
        record = normalizer.normalize(make_ad("1", body="Protect our lakes"))
        assert record.creative_bodies == ["Protect our lakes"]

    def test_creative_bodies_fallback(self, normalizer):
        """Test the top-level creative_bodies fallback."""
        raw = make_ad("1", body=None, creative_bodies=["One", "", None, "Two"])
        assert normalizer.normalize(raw).creative_bodies == ["One", "Two"]

    def test_creative_bodies_empty(self, normalizer):
        """Test that no text gives an empty list, never None."""
        assert normalizer.normalize(make_ad("1", body=None)).creative_bodies == []
        assert normalizer.normalize(make_ad("1", body="  ")).creative_bodies == []

    def test_fetched_at_from_clock(self, normalizer):
        """Test that the capture time comes from the injected clock."""
        assert normalizer.normalize(make_ad("1", fetched_at="2020-01-01")).fetched_at == FIXED_NOW

    def test_raw_data_kept(self, normalizer):
        """Test that the source object is stored verbatim."""
        raw = make_ad("1", collation_id="abc")
        record = normalizer.normalize(raw)
        assert record.raw_data["collation_id"] == "abc"
        assert record.raw_data["snapshot"]["page_name"] == "Clean Water Coalition"

    def test_raw_data_is_a_copy(self, normalizer):
        """Test that later mutation of the payload does not leak into the record."""
        raw = make_ad("1")
        record = normalizer.normalize(raw)
        raw["snapshot"]["page_name"] = "changed"
        assert record.raw_data["snapshot"]["page_name"] == "Clean Water Coalition"

    def test_missing_snapshot_normalized(self, normalizer):
        """Test that a null snapshot is stored as an empty object."""
        record = normalizer.normalize({"ad_archive_id": "1", "page_id": "P", "snapshot": None})
        assert record.raw_data["snapshot"] == {}


class TestModuleFunction:
    """Tests for the module-level normalize helper."""

    def test_normalize(self):
        """Test normalization with the default clock."""
        record = normalize(make_ad("1"))
        assert record.id == "1"
        assert record.fetched_at.tzinfo is not None
