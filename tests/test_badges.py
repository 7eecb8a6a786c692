import pytest

from app.services.stats_service import BADGE_DEFINITIONS, compute_badges, earned_badge_names


@pytest.mark.parametrize(
    "completed, earned",
    [
        (0, []),
        (1, ["First Donation"]),
        (2, ["First Donation"]),
        (3, ["First Donation", "Life Saver"]),
        (5, ["First Donation", "Life Saver", "Hero Donor"]),
        (10, ["First Donation", "Life Saver", "Hero Donor", "Champion"]),
        (25, ["First Donation", "Life Saver", "Hero Donor", "Champion", "Legend"]),
        (26, ["First Donation", "Life Saver", "Hero Donor", "Champion", "Legend"]),
    ],
)
def test_badges_earned_at_thresholds(completed, earned):
    assert earned_badge_names(completed) == earned


def test_every_badge_is_reported_with_its_threshold():
    badges = compute_badges(4)
    assert [b.threshold for b in badges] == [1, 3, 5, 10, 25]
    assert [b.earned for b in badges] == [True, True, False, False, False]
    assert len(badges) == len(BADGE_DEFINITIONS)


def test_badge_icons_are_ascii_slugs():
    for badge in compute_badges(0):
        assert badge.icon.isascii()
        assert " " not in badge.icon


def test_negative_or_missing_counts_earn_nothing():
    assert earned_badge_names(-3) == []
    assert earned_badge_names(None) == []
