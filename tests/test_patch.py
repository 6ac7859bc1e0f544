import asyncio
from datetime import date

import pytest
from helpers import FakeRiotClient, make_match, no_sleep

from errors import FormatError, NoDataError
from patch import (
    Release, active_release, detect_active_release, group_by_release, parse_release, release_from_dir,
)


class TestParseRelease:

    def test_linux_build_string(self):
        assert parse_release("Linux Version 15.14.697.2104 (May 30 2024) [PUBLIC]") == Release(15, 14)

    def test_bare_version(self):
        assert parse_release("15.16.571.9876") == Release(15, 16)

    def test_garbage(self):
        with pytest.raises(FormatError):
            parse_release("garbage")

    def test_two_components_are_not_enough(self):
        with pytest.raises(FormatError):
            parse_release("15.16")

    def test_canonical_string(self):
        assert str(parse_release("Version 15.9.1.2")) == "15.9"

    def test_release_from_dir(self):
        assert release_from_dir("15.16") == Release(15, 16)
        with pytest.raises(FormatError):
            release_from_dir("15.16.1")


class TestOrdering:

    def test_numeric_not_lexicographic(self):
        assert Release(15, 9) < Release(15, 16) < Release(16, 0)

    def test_max(self):
        releases = [Release(15, 16), Release(15, 9), Release(14, 24)]
        assert max(releases) == Release(15, 16)

    def test_hashable_for_grouping(self):
        assert {Release(15, 16): 1}[parse_release("15.16.1.1")] == 1


class TestActiveRelease:
    WINDOWS = [
        (date(2025, 7, 30), "15.15"),
        (date(2025, 8, 13), "15.16"),
        (date(2025, 8, 27), "15.17"),
    ]

    def test_latest_start_on_or_before_today(self):
        assert active_release(date(2025, 8, 20), self.WINDOWS) == Release(15, 16)

    def test_start_day_counts(self):
        assert active_release(date(2025, 8, 27), self.WINDOWS) == Release(15, 17)

    def test_unordered_table(self):
        assert active_release(date(2025, 9, 1), list(reversed(self.WINDOWS))) == Release(15, 17)

    def test_before_every_window(self):
        with pytest.raises(NoDataError):
            active_release(date(2025, 1, 1), self.WINDOWS)


class TestGroupByRelease:

    def test_groups_and_skips_unparsable(self):
        matches = [
            make_match("JP1_1", "15.16.1.1"),
            make_match("JP1_2", "15.15.1.1"),
            make_match("JP1_3", "not a version"),
            make_match("JP1_4", "Version 15.16.9.9"),
        ]
        groups = group_by_release(matches)
        assert set(groups) == {Release(15, 16), Release(15, 15)}
        assert [m["metadata"]["match_id"] for m in groups[Release(15, 16)]] == ["JP1_1", "JP1_4"]


class TestDetectActiveRelease:

    def test_picks_highest_release_seen(self):
        client = FakeRiotClient(
            match_ids_by_puuid={"p1": ["JP1_1"], "p2": ["JP1_2"], "p3": ["JP1_3"]},
            matches={
                "JP1_1": make_match("JP1_1", "15.15.1.1"),
                "JP1_2": make_match("JP1_2", "15.16.2.2"),
                "JP1_3": make_match("JP1_3", "broken"),
            },
        )
        release = asyncio.run(detect_active_release(["p1", "p2", "p3", "p4"], client, sleep=no_sleep))
        assert release == Release(15, 16)

    def test_sample_size_is_bounded(self):
        client = FakeRiotClient(
            match_ids_by_puuid={f"p{i}": [f"JP1_{i}"] for i in range(10)},
            matches={f"JP1_{i}": make_match(f"JP1_{i}") for i in range(10)},
        )
        asyncio.run(detect_active_release([f"p{i}" for i in range(10)], client, sample_size=3, sleep=no_sleep))
        assert sorted(client.fetched("list")) == ["p0", "p1", "p2"]

    def test_empty_sample(self):
        with pytest.raises(NoDataError):
            asyncio.run(detect_active_release([], FakeRiotClient(), sleep=no_sleep))
