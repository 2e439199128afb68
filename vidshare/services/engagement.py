"""
Engagement counters: views, reactions, subscriptions.
The views/reactions/subscriptions tables are the source of truth; Video.views/likes/dislikes
and User.subscribers are caches kept in step inside the same transaction.
All counter writers go through this module.

Each mutation:
- reads current engagement state,
- writes the record change guarded by the unique index (insert) or by a conditional
  delete/update whose rowcount must be 1 (compare-and-swap),
- adjusts the counter with a single UPDATE clamped at 0,
- commits once. Any failure rolls back both record and counter.
A lost race surfaces as ConflictError and is answered by re-reading current state.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vidshare.errors import ConflictError, ForbiddenError, InvalidOperationError, NotFoundError
from vidshare.models.reaction import Reaction, ReactionType
from vidshare.models.subscription import Subscription
from vidshare.models.user import User
from vidshare.models.video import Video
from vidshare.models.view import View

logger = logging.getLogger(__name__)


@dataclass
class ViewResult:
    video_id: str
    views: int
    counted: bool


@dataclass
class ReactionResult:
    video_id: str
    likes: int
    dislikes: int
    reaction: str | None  # actor's resulting reaction


@dataclass
class SubscriptionResult:
    channel_id: str
    subscribers: int
    is_subscribed: bool


@dataclass
class DeletedVideo:
    id: str
    video_url: str
    thumbnail_url: str | None


def _increment(column):
    return column + 1


def _decrement(column):
    """col - 1, floored at 0."""
    return case((column > 0, column - 1), else_=0)


_REACTION_COLUMNS = {
    ReactionType.LIKE: Video.likes,
    ReactionType.DISLIKE: Video.dislikes,
}


@contextmanager
def _transaction(db: Session):
    """Commit on success. Roll back on any error; unique-index violations become ConflictError."""
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("Concurrent engagement write") from e
    except Exception:
        db.rollback()
        raise


def _get_video(db: Session, video_id: str) -> Video:
    video = db.query(Video).filter(Video.id == video_id).first()
    if not video:
        raise NotFoundError("Video not found")
    return video


def _update_video_counters(db: Session, video_id: str, changes: dict) -> None:
    db.query(Video).filter(Video.id == video_id).update(changes, synchronize_session=False)


def _update_subscribers(db: Session, channel_id: str, change) -> None:
    db.query(User).filter(User.id == channel_id).update(
        {User.subscribers: change(User.subscribers)}, synchronize_session=False
    )


def parse_reaction_type(value) -> ReactionType:
    try:
        return ReactionType(value)
    except (ValueError, TypeError):
        raise InvalidOperationError("Reaction type must be 'like' or 'dislike'")


# ---------- Views ----------


def record_view(db: Session, actor_id: str, video_id: str) -> ViewResult:
    """Count one view per (actor, video). Repeated calls are a no-op returning current views."""
    video = _get_video(db, video_id)
    seen = db.query(View.id).filter(View.user_id == actor_id, View.video_id == video_id).first()
    if seen:
        return ViewResult(video_id=video.id, views=video.views, counted=False)
    try:
        with _transaction(db):
            db.add(View(user_id=actor_id, video_id=video_id))
            db.flush()
            _update_video_counters(db, video_id, {Video.views: _increment(Video.views)})
    except ConflictError:
        logger.info("View race for user=%s video=%s; already counted", actor_id, video_id)
        return ViewResult(video_id=video_id, views=_get_video(db, video_id).views, counted=False)
    views = _get_video(db, video_id).views
    logger.info("View counted: user=%s video=%s views=%s", actor_id, video_id, views)
    return ViewResult(video_id=video_id, views=views, counted=True)


# ---------- Reactions ----------


def _reaction_snapshot(db: Session, video_id: str, reaction: str | None) -> ReactionResult:
    video = _get_video(db, video_id)
    return ReactionResult(video_id=video.id, likes=video.likes, dislikes=video.dislikes, reaction=reaction)


def get_reaction_status(db: Session, actor_id: str | None, video_id: str) -> ReactionResult:
    """Counters plus the actor's current reaction (None when anonymous or no reaction)."""
    video = _get_video(db, video_id)
    reaction = None
    if actor_id:
        row = db.query(Reaction.type).filter(Reaction.user_id == actor_id, Reaction.video_id == video_id).first()
        reaction = row[0] if row else None
    return ReactionResult(video_id=video.id, likes=video.likes, dislikes=video.dislikes, reaction=reaction)


def set_reaction(db: Session, actor_id: str, video_id: str, desired) -> ReactionResult:
    """
    none -> desired: insert, +1 desired counter.
    desired -> desired: delete (toggle-off), -1 desired counter.
    other -> desired: switch type in place, -1 old counter, +1 desired counter.
    """
    desired = parse_reaction_type(desired)
    _get_video(db, video_id)
    existing = (
        db.query(Reaction.id, Reaction.type)
        .filter(Reaction.user_id == actor_id, Reaction.video_id == video_id)
        .first()
    )
    new_column = _REACTION_COLUMNS[desired]
    try:
        with _transaction(db):
            if existing is None:
                db.add(Reaction(user_id=actor_id, video_id=video_id, type=desired.value))
                db.flush()
                _update_video_counters(db, video_id, {new_column: _increment(new_column)})
                result = desired.value
            elif existing.type == desired.value:
                deleted = (
                    db.query(Reaction)
                    .filter(Reaction.id == existing.id, Reaction.type == desired.value)
                    .delete(synchronize_session=False)
                )
                if deleted != 1:
                    raise ConflictError("Reaction changed concurrently")
                _update_video_counters(db, video_id, {new_column: _decrement(new_column)})
                result = None
            else:
                old_column = _REACTION_COLUMNS[parse_reaction_type(existing.type)]
                switched = (
                    db.query(Reaction)
                    .filter(Reaction.id == existing.id, Reaction.type == existing.type)
                    .update({Reaction.type: desired.value}, synchronize_session=False)
                )
                if switched != 1:
                    raise ConflictError("Reaction changed concurrently")
                _update_video_counters(
                    db,
                    video_id,
                    {old_column: _decrement(old_column), new_column: _increment(new_column)},
                )
                result = desired.value
    except ConflictError:
        logger.info("Reaction race for user=%s video=%s; returning current state", actor_id, video_id)
        return get_reaction_status(db, actor_id, video_id)
    snapshot = _reaction_snapshot(db, video_id, result)
    logger.info(
        "Reaction set: user=%s video=%s reaction=%s likes=%s dislikes=%s",
        actor_id, video_id, result, snapshot.likes, snapshot.dislikes,
    )
    return snapshot


# ---------- Subscriptions ----------


def _channel_subscribers(db: Session, channel_id: str) -> int:
    row = db.query(User.subscribers).filter(User.id == channel_id).first()
    if row is None:
        raise NotFoundError("Channel not found")
    return row[0]


def get_channel_subscription_status(db: Session, requester_id: str | None, channel_id: str) -> SubscriptionResult:
    subscribers = _channel_subscribers(db, channel_id)
    is_subscribed = False
    if requester_id:
        is_subscribed = (
            db.query(Subscription.id)
            .filter(Subscription.subscriber_id == requester_id, Subscription.channel_id == channel_id)
            .first()
            is not None
        )
    return SubscriptionResult(channel_id=channel_id, subscribers=subscribers, is_subscribed=is_subscribed)


def get_subscription_status(db: Session, requester_id: str | None, video_id: str) -> SubscriptionResult:
    """Read-only: subscriber count of the video's channel and whether requester follows it."""
    video = _get_video(db, video_id)
    return get_channel_subscription_status(db, requester_id, video.user_id)


def toggle_channel_subscription(db: Session, subscriber_id: str, channel_id: str) -> SubscriptionResult:
    """Subscribed -> delete, -1. Not subscribed -> insert, +1. Self-subscription is rejected."""
    if subscriber_id == channel_id:
        raise InvalidOperationError("You cannot subscribe to your own channel")
    _channel_subscribers(db, channel_id)
    existing = (
        db.query(Subscription.id)
        .filter(Subscription.subscriber_id == subscriber_id, Subscription.channel_id == channel_id)
        .first()
    )
    try:
        with _transaction(db):
            if existing:
                deleted = (
                    db.query(Subscription)
                    .filter(Subscription.id == existing.id)
                    .delete(synchronize_session=False)
                )
                if deleted != 1:
                    raise ConflictError("Subscription changed concurrently")
                _update_subscribers(db, channel_id, _decrement)
                is_subscribed = False
            else:
                db.add(Subscription(subscriber_id=subscriber_id, channel_id=channel_id))
                db.flush()
                _update_subscribers(db, channel_id, _increment)
                is_subscribed = True
    except ConflictError:
        logger.info("Subscription race for user=%s channel=%s; returning current state", subscriber_id, channel_id)
        return get_channel_subscription_status(db, subscriber_id, channel_id)
    subscribers = _channel_subscribers(db, channel_id)
    logger.info(
        "Subscription toggled: user=%s channel=%s subscribed=%s subscribers=%s",
        subscriber_id, channel_id, is_subscribed, subscribers,
    )
    return SubscriptionResult(channel_id=channel_id, subscribers=subscribers, is_subscribed=is_subscribed)


def toggle_subscription(db: Session, subscriber_id: str, video_id: str) -> SubscriptionResult:
    """Toggle subscription to the channel that owns video_id."""
    video = _get_video(db, video_id)
    return toggle_channel_subscription(db, subscriber_id, video.user_id)


# ---------- Video lifecycle ----------


def delete_video(db: Session, actor_id: str, video_id: str) -> DeletedVideo:
    """Owner only. Removes the video with its views and reactions; subscriptions stay."""
    video = _get_video(db, video_id)
    if video.user_id != actor_id:
        raise ForbiddenError("You can only delete your own videos")
    deleted = DeletedVideo(id=video.id, video_url=video.video_url, thumbnail_url=video.thumbnail_url)
    with _transaction(db):
        db.query(View).filter(View.video_id == video_id).delete(synchronize_session=False)
        db.query(Reaction).filter(Reaction.video_id == video_id).delete(synchronize_session=False)
        db.delete(video)
    logger.info("Video deleted: id=%s by user=%s", video_id, actor_id)
    return deleted


# ---------- Repair ----------


def recount_video_counters(db: Session, video_id: str) -> Video:
    """Rebuild views/likes/dislikes from the engagement records."""
    video = _get_video(db, video_id)
    views = db.query(func.count(View.id)).filter(View.video_id == video_id).scalar()
    likes = (
        db.query(func.count(Reaction.id))
        .filter(Reaction.video_id == video_id, Reaction.type == ReactionType.LIKE.value)
        .scalar()
    )
    dislikes = (
        db.query(func.count(Reaction.id))
        .filter(Reaction.video_id == video_id, Reaction.type == ReactionType.DISLIKE.value)
        .scalar()
    )
    with _transaction(db):
        video.views = views
        video.likes = likes
        video.dislikes = dislikes
    db.refresh(video)
    return video


def recount_channel_subscribers(db: Session, channel_id: str) -> int:
    """Rebuild User.subscribers from the subscriptions table."""
    _channel_subscribers(db, channel_id)
    count = db.query(func.count(Subscription.id)).filter(Subscription.channel_id == channel_id).scalar()
    with _transaction(db):
        db.query(User).filter(User.id == channel_id).update({User.subscribers: count}, synchronize_session=False)
    return count
