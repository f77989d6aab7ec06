"""Tests for mrw.classify."""

import pytest
from helpers import make_mr, make_user

from mrw.classify import has_approved, is_available, is_involved
from mrw.models import User


class TestIsInvolved:
    def test_none_mr(self) -> None:
        assert is_involved(None, 1) is False

    def test_assignee(self, alice: User, bob: User) -> None:
        assert is_involved(make_mr(1, author=alice, assignee=bob), bob.id) is True

    def test_reviewer(self, alice: User, bob: User, carol: User) -> None:
        assert is_involved(make_mr(1, author=alice, reviewers=[carol, bob]), bob.id) is True

    def test_bystander(self, alice: User, bob: User, carol: User) -> None:
        assert is_involved(make_mr(1, author=alice, assignee=bob), carol.id) is False

    @pytest.mark.parametrize("as_assignee", [True, False])
    def test_draft_never_involves(self, alice: User, bob: User, as_assignee: bool) -> None:
        mr = make_mr(1, author=alice, draft=True, assignee=bob if as_assignee else None, reviewers=[bob])
        assert is_involved(mr, bob.id) is False

    def test_author_never_involved(self, alice: User) -> None:
        mr = make_mr(1, author=alice, assignee=alice, reviewers=[alice])
        assert is_involved(mr, alice.id) is False

    def test_no_author(self, bob: User) -> None:
        assert is_involved(make_mr(1, assignee=bob), bob.id) is True


class TestHasApproved:
    def test_none_and_empty(self) -> None:
        assert has_approved(None, 1) is False
        assert has_approved([], 1) is False

    def test_member(self, alice: User, bob: User) -> None:
        assert has_approved([alice, bob], bob.id) is True
        assert has_approved([alice], bob.id) is False


class TestIsAvailable:
    def test_default_status(self) -> None:
        assert is_available(make_user(1)) is True

    @pytest.mark.parametrize("message", ["OOO", "ooo till friday", "On Vacation", "VACATION mode"])
    def test_away_messages(self, message: str) -> None:
        assert is_available(make_user(1, message=message)) is False

    @pytest.mark.parametrize("availability", ["busy", "Busy", "BUSY"])
    def test_busy(self, availability: str) -> None:
        assert is_available(make_user(1, availability=availability)) is False

    def test_other_values(self) -> None:
        assert is_available(make_user(1, message="focusing", availability="not_set")) is True
