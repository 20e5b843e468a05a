"""Service producing and rating song suggestions."""

import logging

from mushee.config.settings import RecommendationSettings
from mushee.domain.entities import (
    CollectionSortField,
    RatedSuggestion,
    SongReference,
    SortOrder,
    SuggestionFeedback,
)
from mushee.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    ExternalServiceError,
    OperationTimeoutError,
    RecommendationUnavailableError,
    ValidationException,
)
from mushee.domain.ports import (
    ICollectionRepository,
    IRecommendationClient,
    ISuggestionFeedbackRepository,
)
from mushee.domain.value_objects import FeedbackId, UserId
from mushee.infrastructure.observability.logger_template import log_operation

from .timeouts import retry_with_timeout

logger = logging.getLogger(__name__)


class RecommendationService:
    """Suggest songs similar to a user's library and record what was suggested.

    Hey future me - the recommendation API is slow and flaky by nature. Each attempt gets
    settings.timeout_ms (3 seconds); timed-out attempts are retried up to max_retries times,
    anything else fails right away. Whatever goes wrong ends up as ONE error for the user:
    RecommendationUnavailableError ("try again later"). Every successful suggestion set is
    stored as a SuggestionFeedback row so the user can rate it afterwards.
    """

    def __init__(
        self,
        client: IRecommendationClient,
        collection_repository: ICollectionRepository,
        feedback_repository: ISuggestionFeedbackRepository,
        settings: RecommendationSettings,
    ) -> None:
        self.client = client
        self.collection_repository = collection_repository
        self.feedback_repository = feedback_repository
        self.settings = settings

    async def _library_songs(self, user_id: UserId) -> list[SongReference]:
        page = await self.collection_repository.list_by_user(
            user_id,
            page=1,
            page_size=self.settings.library_sample_limit,
            sort=CollectionSortField.ADDED_AT,
            order=SortOrder.DESC,
        )
        return [
            SongReference(title=item.score.title, composer=item.score.composer)
            for item in page.items
        ]

    async def generate_suggestions(
        self, user_id: UserId, songs: list[SongReference] | None = None
    ) -> SuggestionFeedback:
        """Get suggestions for the given songs (or the user's library) and store them.

        Raises:
            ValidationException: If there is nothing to base suggestions on.
            RecommendationUnavailableError: If the API failed or kept timing out.
        """
        input_songs = songs if songs else await self._library_songs(user_id)
        if not input_songs:
            raise ValidationException(
                "Add some songs to your library before asking for suggestions"
            )
        if len(input_songs) > self.settings.library_sample_limit:
            input_songs = input_songs[: self.settings.library_sample_limit]

        if not self.settings.is_configured:
            logger.warning("Recommendation API key missing, suggestions unavailable")
            raise RecommendationUnavailableError()

        count = self.settings.suggestion_count
        async with log_operation(
            logger,
            "generate_suggestions",
            expected_errors=(RecommendationUnavailableError,),
            user_id=str(user_id),
            input_count=len(input_songs),
        ) as fields:
            try:
                suggested = await retry_with_timeout(
                    lambda: self.client.suggest(input_songs, count),
                    max_retries=self.settings.max_retries,
                    limit_ms=self.settings.timeout_ms,
                    delay_ms=self.settings.retry_delay_ms,
                    operation_name="recommendation_request",
                )
            except (OperationTimeoutError, ExternalServiceError, ConfigurationError) as e:
                raise RecommendationUnavailableError() from e

            feedback = SuggestionFeedback(
                id=FeedbackId.generate(),
                user_id=user_id,
                input_songs=list(input_songs),
                suggestions=[RatedSuggestion(song=song) for song in suggested],
            )
            await self.feedback_repository.add(feedback)
            fields["feedback_id"] = str(feedback.id)

        return feedback

    async def rate_suggestions(
        self,
        user_id: UserId,
        feedback_id: FeedbackId,
        ratings: list[RatedSuggestion],
    ) -> SuggestionFeedback:
        """Store the user's ratings for a suggestion set and recompute its score.

        Raises:
            EntityNotFoundException: If the set doesn't exist or belongs to someone else.
            ValidationException: If the ratings don't match the stored suggestions.
        """
        feedback = await self.feedback_repository.get_by_id(feedback_id)
        # Same answer for "missing" and "not yours" so ids can't be probed
        if feedback is None or feedback.user_id != user_id:
            raise EntityNotFoundException("SuggestionFeedback", feedback_id.value)

        try:
            feedback.apply_ratings(ratings)
        except ValueError as e:
            raise ValidationException(str(e)) from e

        await self.feedback_repository.update(feedback)
        logger.info(
            "Rated suggestion set %s (rating_score=%d)", feedback_id, feedback.rating_score
        )
        return feedback
