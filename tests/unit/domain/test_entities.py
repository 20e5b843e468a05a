"""Tests for domain entities."""

from datetime import UTC, datetime

import pytest

from mushee.domain.entities import (
    CanonicalScore,
    CollectionPage,
    IngestionOutcome,
    IngestionStatus,
    RatedSuggestion,
    SongReference,
    SuggestionFeedback,
)
from mushee.domain.value_objects import FeedbackId, ScoreId, UserId


def _score(**overrides: object) -> CanonicalScore:
    values: dict[str, object] = {
        "id": ScoreId.generate(),
        "title": "Nocturne",
        "composer": "Chopin",
        "content_hash": "0" * 32,
    }
    values.update(overrides)
    return CanonicalScore(**values)  # type: ignore[arg-type]


class TestCanonicalScore:
    """Test score invariants."""

    @pytest.mark.parametrize("field", ["title", "composer", "content_hash"])
    def test_required_fields_cannot_be_empty(self, field: str) -> None:
        with pytest.raises(ValueError):
            _score(**{field: ""})

    def test_public_domain_means_no_uploader(self) -> None:
        assert _score().is_public_domain
        assert not _score(uploader_id=UserId("user-1")).is_public_domain


class TestUserId:
    """Test user id validation."""

    def test_strips_header_value(self) -> None:
        assert UserId.from_string("  user-1 ").value == "user-1"

    def test_rejects_blank(self) -> None:
        with pytest.raises(ValueError):
            UserId.from_string("   ")


class TestIngestionOutcome:
    """Test outcome flags."""

    def test_duplicate_flag_follows_status(self) -> None:
        score = _score()
        now = datetime.now(UTC)
        created = IngestionOutcome(IngestionStatus.CREATED, score, now)
        linked = IngestionOutcome(IngestionStatus.LINKED_EXISTING, score, now)
        assert not created.duplicate
        assert linked.duplicate
        assert linked.content_hash == score.content_hash


class TestCollectionPage:
    """Test page arithmetic."""

    @pytest.mark.parametrize(
        ("total", "page_size", "expected"),
        [(0, 50, 0), (50, 50, 1), (51, 50, 2), (120, 50, 3)],
    )
    def test_total_pages(self, total: int, page_size: int, expected: int) -> None:
        assert CollectionPage([], total_count=total, page_size=page_size).total_pages == expected


class TestSuggestionFeedback:
    """Test rating a suggestion set."""

    @pytest.fixture
    def feedback(self) -> SuggestionFeedback:
        return SuggestionFeedback(
            id=FeedbackId.generate(),
            user_id=UserId("user-1"),
            input_songs=[SongReference("Für Elise", "Beethoven")],
            suggestions=[
                RatedSuggestion(SongReference("Clair de Lune", "Debussy")),
                RatedSuggestion(SongReference("Gymnopédie No. 1", "Satie")),
                RatedSuggestion(SongReference("Nocturne Op. 9 No. 2", "Chopin")),
            ],
        )

    def test_rating_score_is_sum_of_ratings(self, feedback: SuggestionFeedback) -> None:
        ratings = [
            RatedSuggestion(s.song, rating)
            for s, rating in zip(feedback.suggestions, [1, 1, -1], strict=True)
        ]
        feedback.apply_ratings(ratings)
        assert feedback.rating_score == 1
        assert [s.user_rating for s in feedback.suggestions] == [1, 1, -1]

    def test_unrated_entries_count_as_zero(self, feedback: SuggestionFeedback) -> None:
        ratings = [
            RatedSuggestion(s.song, rating)
            for s, rating in zip(feedback.suggestions, [-1, None, None], strict=True)
        ]
        feedback.apply_ratings(ratings)
        assert feedback.rating_score == -1

    def test_updated_at_moves_forward(self, feedback: SuggestionFeedback) -> None:
        before = feedback.updated_at
        feedback.apply_ratings([RatedSuggestion(s.song, 1) for s in feedback.suggestions])
        assert feedback.updated_at >= before

    def test_rejects_foreign_songs(self, feedback: SuggestionFeedback) -> None:
        ratings = [RatedSuggestion(SongReference("Other", "Someone"), 1)] * 3
        with pytest.raises(ValueError, match="do not match"):
            feedback.apply_ratings(ratings)

    def test_rejects_wrong_count(self, feedback: SuggestionFeedback) -> None:
        with pytest.raises(ValueError, match="do not match"):
            feedback.apply_ratings([RatedSuggestion(feedback.suggestions[0].song, 1)])

    def test_rating_values_are_restricted(self) -> None:
        with pytest.raises(ValueError):
            RatedSuggestion(SongReference("Clair de Lune", "Debussy"), 2)
