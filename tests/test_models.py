"""Tests for snapshot data models."""

import pytest

from profile_analyzer.profile.models import (
    ProfileSnapshot,
    SectionRecord,
    degraded_record,
    has_content,
)


class TestSectionRecord:
    def test_from_dict_reads_counts(self):
        record = SectionRecord.from_dict({"exists": True, "count": 4, "charCount": 120, "text": "hi"})
        assert record.exists
        assert record.count == 4
        assert record.char_count == 120
        assert record.get("text") == "hi"

    def test_visible_count_used_when_no_count(self):
        record = SectionRecord.from_dict({"exists": True, "visibleCount": 7})
        assert record.count == 7

    def test_bool_means_presence_only(self):
        assert SectionRecord.from_dict(True).exists
        assert not SectionRecord.from_dict(False).exists

    def test_missing_exists_key_is_degraded(self):
        record = SectionRecord.from_dict({"count": 3})
        assert not record.exists
        assert record.error

    def test_non_mapping_is_degraded(self):
        record = SectionRecord.from_dict("garbage")
        assert record.error

    def test_negative_and_bad_counts_clamp_to_zero(self):
        record = SectionRecord.from_dict({"exists": True, "count": -2, "charCount": "lots"})
        assert record.count == 0
        assert record.char_count == 0

    def test_to_dict_uses_char_count_key(self):
        d = SectionRecord(exists=True, count=2, char_count=10).to_dict()
        assert d == {"exists": True, "count": 2, "charCount": 10}

    def test_degraded_record(self):
        record = degraded_record(attempts=3)
        assert record.to_dict() == {"exists": False, "count": 0, "charCount": 0, "error": True, "attempts": 3}


class TestHasContent:
    def test_absent(self):
        assert not has_content(None)
        assert not has_content(SectionRecord(exists=False, count=5))

    def test_counts(self):
        assert has_content(SectionRecord(exists=True, count=1))
        assert has_content(SectionRecord(exists=True, char_count=1))

    def test_exists_but_empty(self):
        assert not has_content(SectionRecord(exists=True))


class TestProfileSnapshot:
    def test_coerces_dicts(self):
        snapshot = ProfileSnapshot.from_dict("jane", {"about": {"exists": True, "charCount": 900}})
        assert isinstance(snapshot.get("about"), SectionRecord)
        assert snapshot.get("about").char_count == 900
        assert "about" in snapshot
        assert snapshot.get("skills") is None

    def test_sections_are_read_only(self):
        snapshot = ProfileSnapshot.from_dict("jane", {"photo": True})
        with pytest.raises(TypeError):
            snapshot.sections["photo"] = SectionRecord()

    def test_source_dict_changes_do_not_leak(self):
        data = {"photo": True}
        snapshot = ProfileSnapshot.from_dict("jane", data)
        data["about"] = {"exists": True}
        assert "about" not in snapshot

    def test_connections(self):
        snapshot = ProfileSnapshot.from_dict("jane", {"connections": {"exists": True, "count": 500}})
        assert snapshot.connections == 500
        assert ProfileSnapshot("jane").connections == 0
