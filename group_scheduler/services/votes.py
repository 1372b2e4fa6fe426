"""
Vote tally, venue ranking and finalization.

Provides:
- CastVote with a storage-level upsert on (event_id, voter_id)
- Aggregate: distinct voters and summed value per option
- Deterministic presentation ranking of venue options
- Finalize: organizer choice of the winning option, then confirmation
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from group_scheduler.integrations.base import PlaceDirectory, VenueCandidate
from group_scheduler.integrations.places import SqlPlaceDirectory
from group_scheduler.models.enums import EventStatus, PlaceVerificationStatus
from group_scheduler.models.events import Event
from group_scheduler.models.venues import Place, VenueOption, Vote
from group_scheduler.services import queries
from group_scheduler.services.authorization import Actor, require_organizer_or_moderator
from group_scheduler.services.clock import Clock, utc_now
from group_scheduler.services.errors import (
    InputValidationError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from group_scheduler.services.lifecycle import EventLifecycleStateMachine, commit_changes

logger = logging.getLogger(__name__)

VIEWABLE_STATUSES = frozenset({
    EventStatus.AI_RECOMMENDING,
    EventStatus.VOTING,
    EventStatus.CONFIRMED,
    EventStatus.COMPLETED,
})

OPTION_EDITABLE_STATUSES = frozenset({EventStatus.AI_RECOMMENDING, EventStatus.VOTING})


@dataclass(frozen=True)
class OptionTally:
    """Vote totals for one option."""

    option_id: UUID
    total_votes: int = 0
    vote_score: int = 0


@dataclass
class RankedOption:
    """A venue option with the display fields ranking and listing need."""

    option: VenueOption
    name: str
    rating: Optional[float]
    total_reviews: int
    total_votes: int = 0
    vote_score: int = 0

    @property
    def is_internal(self) -> bool:
        return self.option.place_id is not None

    @property
    def ai_score(self) -> Optional[float]:
        return self.option.ai_score


def ranking_key(item: RankedOption) -> tuple:
    """
    Total order for presenting options.

    Internal places first, then options with an AI score, AI score
    descending, rating descending, review count descending, name
    ascending, and finally the option id so equal rows never swap.
    """
    return (
        0 if item.is_internal else 1,
        0 if item.ai_score is not None else 1,
        -(item.ai_score or 0.0),
        item.rating is None,
        -(item.rating or 0.0),
        -(item.total_reviews or 0),
        (item.name or "").casefold(),
        str(item.option.id),
    )


def rank_options(items: Sequence[RankedOption]) -> list[RankedOption]:
    return sorted(items, key=ranking_key)


def pick_winner(items: Sequence[RankedOption]) -> Optional[RankedOption]:
    """
    Option to finalize when voting closes without an organizer choice.

    Highest vote score wins; ties (including nobody voting) fall back to
    presentation order.
    """
    ranked = rank_options(items)
    if not ranked:
        return None

    best = ranked[0]
    for item in ranked[1:]:
        if item.vote_score > best.vote_score:
            best = item
    return best


class VoteTally:
    """Votes and venue options of events."""

    def __init__(
        self,
        session: Session,
        lifecycle: Optional[EventLifecycleStateMachine] = None,
        place_directory: Optional[PlaceDirectory] = None,
        clock: Clock = utc_now,
    ):
        self.session = session
        self.clock = clock
        self.lifecycle = lifecycle or EventLifecycleStateMachine(session, clock=clock)
        self.place_directory = place_directory or SqlPlaceDirectory(session)

    # -------------------------------------------------------------------------
    # Votes
    # -------------------------------------------------------------------------

    def cast_vote(
        self,
        event_id: UUID,
        option_id: UUID,
        voter_id: UUID,
        value: int,
        comment: Optional[str] = None,
    ) -> Vote:
        """
        Cast or change a voter's single vote for an event.

        Args:
            event_id: Event ID
            option_id: Venue option voted for
            voter_id: Accepted participant or organizer
            value: Signed weight
            comment: Optional comment

        Returns:
            The voter's current vote

        Raises:
            InvalidTransitionError: Event is not in voting
            NotFoundError: Option does not belong to the event
            UnauthorizedError: Voter is neither accepted participant nor organizer
            InputValidationError: Missing or non-integral value
        """
        event = queries.load_event(self.session, event_id)
        if event.status != EventStatus.VOTING:
            raise InvalidTransitionError(
                f"Votes can only be cast while voting is open (event is {event.status.value})"
            )
        queries.get_option(self.session, event_id, option_id)

        if voter_id != event.organizer_id and not queries.is_accepted_participant(
            self.session, event_id, voter_id
        ):
            raise UnauthorizedError("Only accepted participants and the organizer can vote")
        weight = _vote_weight(value)

        self._upsert_vote(event_id, option_id, voter_id, weight, comment)
        self.session.commit()

        vote = self.session.scalars(
            select(Vote)
            .where(and_(Vote.event_id == event_id, Vote.voter_id == voter_id))
            .execution_options(populate_existing=True)
        ).one()
        logger.info(f"User {voter_id} voted {value} for option {option_id} on event {event_id}")
        return vote

    def _upsert_vote(
        self,
        event_id: UUID,
        option_id: UUID,
        voter_id: UUID,
        value: int,
        comment: Optional[str],
    ) -> None:
        """Insert the vote or replace the voter's existing one in a single statement."""
        now = self.clock()
        values = {
            "id": uuid.uuid4(),
            "event_id": event_id,
            "venue_option_id": option_id,
            "voter_id": voter_id,
            "value": value,
            "comment": comment,
            "voted_at": now,
        }
        replace = {
            "venue_option_id": option_id,
            "value": value,
            "comment": comment,
            "voted_at": now,
            "updated_at": now,
        }

        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise NotImplementedError(f"Vote upsert is not supported on {dialect}")

        stmt = insert(Vote).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Vote.event_id, Vote.voter_id],
            set_=replace,
        )
        self.session.execute(stmt)

    def aggregate(self, event_id: UUID) -> dict[UUID, OptionTally]:
        """
        Vote totals for every option of an event, including options without votes.

        Returns:
            Mapping option id -> OptionTally
        """
        queries.load_event(self.session, event_id)
        stmt = (
            select(
                VenueOption.id,
                func.count(func.distinct(Vote.voter_id)),
                func.coalesce(func.sum(Vote.value), 0),
            )
            .outerjoin(Vote, Vote.venue_option_id == VenueOption.id)
            .where(VenueOption.event_id == event_id)
            .group_by(VenueOption.id)
        )
        return {
            option_id: OptionTally(option_id=option_id, total_votes=int(count), vote_score=int(score))
            for option_id, count, score in self.session.execute(stmt).all()
        }

    # -------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------

    def ranked_options(self, event_id: UUID) -> list[RankedOption]:
        """All options of an event with vote totals, in presentation order."""
        totals = self.aggregate(event_id)
        rows = self.session.execute(
            select(VenueOption, Place)
            .outerjoin(Place, Place.id == VenueOption.place_id)
            .where(VenueOption.event_id == event_id)
        ).all()

        items = []
        for option, place in rows:
            tally = totals.get(option.id, OptionTally(option_id=option.id))
            if place is not None:
                name, rating, reviews = place.name, place.average_rating, place.total_reviews
            else:
                name = option.external_name or ""
                rating = option.external_rating
                reviews = option.external_total_reviews or 0
            items.append(
                RankedOption(
                    option=option,
                    name=name,
                    rating=rating,
                    total_reviews=reviews,
                    total_votes=tally.total_votes,
                    vote_score=tally.vote_score,
                )
            )
        return rank_options(items)

    def finalizable_options(self, event_id: UUID) -> list[RankedOption]:
        """
        Ranked options that ``finalize`` would accept: external listings and
        internal places that exist and are approved.
        """
        eligible = []
        for item in self.ranked_options(event_id):
            if item.is_internal:
                place = self.place_directory.get_place(item.option.place_id)
                if place is None or not place.is_approved:
                    continue
            eligible.append(item)
        return eligible

    def list_recommendations(self, event_id: UUID, actor: Actor) -> list[RankedOption]:
        """
        Venue options as shown to participants.

        Raises:
            InvalidOperationError: Event has no recommendations phase yet
            UnauthorizedError: Actor is not organizer, accepted participant or moderator
        """
        event = queries.load_event(self.session, event_id)
        if event.status not in VIEWABLE_STATUSES:
            raise InvalidOperationError(
                f"Recommendations are not available while the event is {event.status.value}"
            )
        self._require_member(event, actor, "view recommendations")
        return self.ranked_options(event_id)

    def add_manual_option(
        self,
        event_id: UUID,
        actor: Actor,
        place_id: Optional[UUID] = None,
        external: Optional[VenueCandidate] = None,
        estimated_cost_per_person: Optional[Decimal] = None,
    ) -> VenueOption:
        """
        Add a venue option by hand during recommendation or voting.

        Args:
            event_id: Event ID
            actor: Organizer or accepted participant
            place_id: Internal place to add
            external: External listing snapshot (used when place_id is None)
            estimated_cost_per_person: Optional cost estimate

        Raises:
            InvalidOperationError: Wrong phase, rejected place or duplicate option
            UnauthorizedError: Actor is not organizer or accepted participant
            NotFoundError: Unknown place
            InputValidationError: Neither place nor external listing given
        """
        event = queries.load_event(self.session, event_id)
        if event.status not in OPTION_EDITABLE_STATUSES:
            raise InvalidOperationError(
                f"Options can only be added during recommendation or voting "
                f"(event is {event.status.value})"
            )
        if not (actor.is_organizer_of(event) or queries.is_accepted_participant(
            self.session, event_id, actor.user_id
        )):
            raise UnauthorizedError("Only the organizer or accepted participants can add options")

        if place_id is not None:
            place = self.place_directory.get_place(place_id)
            if place is None:
                raise NotFoundError(f"Place {place_id} not found")
            if place.verification_status == PlaceVerificationStatus.REJECTED.value:
                raise InvalidOperationError(f"Place {place.name} was rejected and cannot be proposed")
            option = VenueOption(event_id=event_id, place_id=place_id)
        elif external is not None and external.external_name:
            option = option_from_candidate(event_id, external)
            option.ai_score = None
            option.ai_reasoning = None
        else:
            raise InputValidationError("A place id or an external listing with a name is required")

        option.suggested_by = actor.user_id
        if estimated_cost_per_person is not None:
            option.estimated_cost_per_person = estimated_cost_per_person
        self.session.add(option)

        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise InvalidOperationError("This venue is already an option for the event", original_error=e)

        logger.info(f"User {actor.user_id} added option {option.id} to event {event_id}")
        return option

    # -------------------------------------------------------------------------
    # Finalize
    # -------------------------------------------------------------------------

    def finalize(
        self,
        event_id: UUID,
        option_id: UUID,
        actor: Optional[Actor],
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Event:
        """
        Select the winning option and confirm the event.

        Args:
            event_id: Event ID
            option_id: Chosen option
            actor: Organizer or moderator; None when the voting deadline sweep finalizes
            reason: Optional reason for the audit log
            now: Confirmation time; defaults to the clock

        Raises:
            UnauthorizedError: Actor is neither organizer nor moderator
            InvalidTransitionError: Event is not in voting
            NotFoundError: Unknown option or place
            InvalidOperationError: Internal place is not approved
            ConflictError: Another finalize won the race
        """
        event = queries.load_event(self.session, event_id)
        if actor is not None:
            require_organizer_or_moderator(event, actor, "finalize the venue")
        if event.status != EventStatus.VOTING:
            raise InvalidTransitionError(
                f"Only events in voting can be finalized (event is {event.status.value})"
            )

        option = queries.get_option(self.session, event_id, option_id)

        final_place_id = None
        if option.place_id is not None:
            place = self.place_directory.get_place(option.place_id)
            if place is None:
                raise NotFoundError(f"Place {option.place_id} not found")
            if not place.is_approved:
                raise InvalidOperationError(
                    f"Place {place.name} is not approved ({place.verification_status})"
                )
            final_place_id = place.id
            if place.timezone:
                event.timezone = place.timezone

        event.final_place_id = final_place_id
        event.final_option_id = option.id

        plan = self.lifecycle.stage(
            event,
            EventStatus.CONFIRMED,
            reason=reason or "Venue finalized",
            actor=actor,
            now=now,
        )
        commit_changes(self.session, f"finalize event {event_id}")
        self.lifecycle.after_commit(event, plan)

        logger.info(f"Event {event_id} finalized with option {option_id}")
        return event

    def _require_member(self, event: Event, actor: Actor, action: str) -> None:
        if actor.is_organizer_of(event) or actor.is_moderator:
            return
        if queries.is_accepted_participant(self.session, event.id, actor.user_id):
            return
        raise UnauthorizedError(f"Only the organizer, accepted participants or moderators can {action}")


def _vote_weight(value) -> int:
    """Whole-number vote weight; fractional values are rejected rather than truncated."""
    if value is None:
        raise InputValidationError("Vote value is required")
    try:
        weight = int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise InputValidationError(f"Vote value must be a whole number (got {value!r})", original_error=e)
    if weight != value:
        raise InputValidationError(f"Vote value must be a whole number (got {value!r})")
    return weight


def option_from_candidate(event_id: UUID, candidate: VenueCandidate) -> VenueOption:
    """Build a VenueOption row from a recommendation candidate."""
    return VenueOption(
        event_id=event_id,
        place_id=candidate.place_id,
        ai_score=candidate.ai_score,
        ai_reasoning=candidate.ai_reasoning,
        pros=list(candidate.pros),
        cons=list(candidate.cons),
        estimated_cost_per_person=candidate.estimated_cost_per_person,
        external_provider=candidate.external_provider,
        external_place_id=candidate.external_place_id,
        external_name=candidate.external_name,
        external_address=candidate.external_address,
        external_latitude=candidate.external_latitude,
        external_longitude=candidate.external_longitude,
        external_rating=candidate.external_rating,
        external_total_reviews=candidate.external_total_reviews,
        external_phone=candidate.external_phone,
        external_website=candidate.external_website,
        external_photo_url=candidate.external_photo_url,
        external_category=candidate.external_category,
    )
