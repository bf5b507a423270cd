"""Pure rules: vote transitions, direction parsing, tag name cleaning and relative ages."""
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from qa.exceptions import InvalidRequest
from qa.services import (
    VOTE_CREATE, VOTE_DELETE, VOTE_UPDATE, clean_tag_names, parse_direction, resolve_vote,
)
from qa.utils import format_time_ago

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=dt_timezone.utc)


class TestResolveVote:

    @pytest.mark.parametrize("requested", [1, -1])
    def test_no_existing_vote_creates(self, requested):
        assert resolve_vote(None, requested) == (VOTE_CREATE, requested)

    @pytest.mark.parametrize("value", [1, -1])
    def test_same_direction_toggles_off(self, value):
        assert resolve_vote(value, value) == (VOTE_DELETE, None)

    @pytest.mark.parametrize("existing,requested", [(1, -1), (-1, 1)])
    def test_opposite_direction_flips(self, existing, requested):
        assert resolve_vote(existing, requested) == (VOTE_UPDATE, requested)

    def test_rejects_values_other_than_unit(self):
        with pytest.raises(InvalidRequest):
            resolve_vote(None, 2)


class TestParseDirection:

    def test_maps_up_and_down(self):
        assert parse_direction("up") == 1
        assert parse_direction("DOWN") == -1

    @pytest.mark.parametrize("direction", [None, "", "sideways"])
    def test_invalid_direction(self, direction):
        with pytest.raises(InvalidRequest):
            parse_direction(direction)


class TestCleanTagNames:

    def test_strips_drops_blanks_and_collapses_repeats(self):
        assert clean_tag_names([" sql ", "", "beginners", "sql"]) == ["sql", "beginners"]

    def test_is_case_sensitive(self):
        assert clean_tag_names(["SQL", "sql"]) == ["SQL", "sql"]

    def test_none_is_empty(self):
        assert clean_tag_names(None) == []

    def test_rejects_overlong_names(self):
        with pytest.raises(InvalidRequest):
            clean_tag_names(["x" * 33])

    def test_rejects_non_strings(self):
        with pytest.raises(InvalidRequest):
            clean_tag_names([42])


class TestFormatTimeAgo:

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=59, seconds=59), "59 minutes ago"),
        (timedelta(hours=1), "1 hour ago"),
        (timedelta(hours=23, minutes=59), "23 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=12, hours=5), "12 days ago"),
    ])
    def test_buckets(self, delta, expected):
        assert format_time_ago(NOW - delta, now=NOW) == expected

    def test_future_timestamp_is_just_now(self):
        assert format_time_ago(NOW + timedelta(hours=2), now=NOW) == "Just now"
