"""Tests for the completion celebration sequence."""

import pytest

from src.authoring.models.enums import CelebrationStage
from src.authoring.services.celebration import (
    ALL_COMPLETE_DURATION_SECONDS,
    ITEM_DURATION_SECONDS,
    MILESTONE_DURATION_SECONDS,
    STREAK_MILESTONES,
    CelebrationSequence,
    identity_message,
    milestone_message,
)
from src.authoring.services.state_machine import InvalidTransitionError


class TestSequence:
    def test_full_sequence(self):
        seq = CelebrationSequence(["post-1", "post-2"], streak=3)

        assert seq.complete_item("post-1") == CelebrationStage.ITEM
        assert seq.current_item == "post-1"
        assert seq.finish_item() == CelebrationStage.IDLE
        assert seq.remaining == 1
        assert seq.message() is None

        seq.complete_item("post-2")
        assert seq.finish_item() == CelebrationStage.ALL_COMPLETE
        assert seq.all_complete is True
        assert seq.message() == identity_message(3)

        assert seq.finish_all() == CelebrationStage.DONE

    def test_single_item_goes_straight_to_all_complete(self):
        seq = CelebrationSequence(["only"])
        seq.complete_item("only")
        assert seq.finish_item() == CelebrationStage.ALL_COMPLETE

    def test_item_cannot_complete_twice(self):
        seq = CelebrationSequence(["a", "b"])
        seq.complete_item("a")
        seq.finish_item()
        with pytest.raises(InvalidTransitionError, match="already complete"):
            seq.complete_item("a")
        assert seq.remaining == 1

    def test_unknown_item(self):
        with pytest.raises(KeyError):
            CelebrationSequence(["a"]).complete_item("z")

    def test_cannot_overlap_item_celebrations(self):
        seq = CelebrationSequence(["a", "b"])
        seq.complete_item("a")
        with pytest.raises(InvalidTransitionError):
            seq.complete_item("b")

    def test_done_is_terminal(self):
        seq = CelebrationSequence(["a"])
        seq.complete_item("a")
        seq.finish_item()
        seq.finish_all()
        with pytest.raises(InvalidTransitionError):
            seq.finish_all()
        with pytest.raises(InvalidTransitionError):
            seq.finish_item()

    def test_finish_all_before_everything_is_complete(self):
        seq = CelebrationSequence(["a", "b"])
        with pytest.raises(InvalidTransitionError):
            seq.finish_all()

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            CelebrationSequence([])


class TestMessages:
    @pytest.mark.parametrize("streak,expected", [
        (0, "First sync done"),
        (1, "momentum"),
        (4, "A week"),
        (8, "Two weeks"),
        (15, "who you are"),
        (45, "Authority machine"),
    ])
    def test_identity_message_tiers(self, streak, expected):
        assert expected in identity_message(streak)

    def test_milestones(self):
        assert milestone_message(30) == STREAK_MILESTONES[30]
        assert milestone_message(31) is None


class TestDurations:
    def test_duration_follows_stage(self):
        sequence = CelebrationSequence(["a", "b"], streak=3)
        assert sequence.duration() is None

        sequence.complete_item("a")
        assert sequence.duration() == ITEM_DURATION_SECONDS
        sequence.finish_item()
        assert sequence.duration() is None

        sequence.complete_item("b")
        sequence.finish_item()
        assert sequence.duration() == ALL_COMPLETE_DURATION_SECONDS

        sequence.finish_all()
        assert sequence.duration() is None

    def test_milestone_streak_plays_longer(self):
        sequence = CelebrationSequence(["a"], streak=7)
        sequence.complete_item("a")
        sequence.finish_item()
        assert sequence.duration() == MILESTONE_DURATION_SECONDS
