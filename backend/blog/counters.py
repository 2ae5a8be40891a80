"""
Counter Rules Engine
====================

Maps a lifecycle event (post/comment created or removed) to at most ONE
field update against the parent row, and applies it.

RULES:
------
POST CREATED      author.post_count += 1
POST REMOVED      author.post_count -= 1            WHERE post_count > 0
COMMENT CREATED   parent HAS_COMMENTS:  comment_count += 1
                  otherwise:            comment_status = HAS_COMMENTS,
                                        comment_count = 1
COMMENT REMOVED   parent NEVER_COMMENTED / NO_COMMENTS: nothing
                  otherwise:            comment_count -= 1 WHERE comment_count > 0
                                        (+ comment_status = NO_COMMENTS when
                                        the count was 1 before the update)

Planning (plan_counter_update) is pure. Reading the parent and executing the
update happen inside the caller's transaction; increments are always sent as
F() expressions so concurrent writers can't lose updates.

The post cascade (services.remove_post) does NOT go through the COMMENT
REMOVED rule: it resets the post and bulk-removes comments without firing
per-comment hooks.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Dict, Optional

from django.db.models import F

from .exceptions import GuardViolation, InvariantViolation, translate_store_errors
from .models import Comment, Post, User

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CREATED = 'CREATED'
    REMOVED = 'REMOVED'


class EntityType(str, Enum):
    POST = 'POST'
    COMMENT = 'COMMENT'


@dataclass(frozen=True)
class CounterEvent:
    kind: EventKind
    entity_type: EntityType
    entity: Any

    @classmethod
    def created(cls, instance) -> 'CounterEvent':
        return cls(EventKind.CREATED, entity_type_of(instance), instance)

    @classmethod
    def removed(cls, instance) -> 'CounterEvent':
        return cls(EventKind.REMOVED, entity_type_of(instance), instance)

    def __str__(self):
        return f"{self.entity_type.value} {self.kind.value} (pk={self.entity.pk})"


def entity_type_of(instance) -> EntityType:
    if isinstance(instance, Post):
        return EntityType.POST
    if isinstance(instance, Comment):
        return EntityType.COMMENT
    raise TypeError(f"No counter rules for {type(instance).__name__}")


@dataclass(frozen=True)
class FieldUpdate:
    """
    One UPDATE against one row.

    increments: field -> delta, sent as F(field) + delta
    assignments: field -> literal value
    guard: extra filter on the UPDATE; no matching row means the guard failed
    """
    model: type
    pk: int
    increments: Dict[str, int] = field(default_factory=dict)
    assignments: Dict[str, Any] = field(default_factory=dict)
    guard: Dict[str, Any] = field(default_factory=dict)

    def values(self) -> Dict[str, Any]:
        values = {name: F(name) + delta for name, delta in self.increments.items()}
        values.update(self.assignments)
        return values

    def __str__(self):
        return f"{self.model.__name__}(pk={self.pk}) {self.increments or ''}{self.assignments or ''}"


def plan_counter_update(event: CounterEvent, parent: Optional[dict] = None) -> Optional[FieldUpdate]:
    """
    Decide the field update for an event.

    `parent` is the parent post's {'comment_status', 'comment_count'} as read
    inside the current transaction. It is only consulted for comment events;
    post events need no read because their guard is part of the UPDATE.
    """
    entity = event.entity

    if event.entity_type is EntityType.POST:
        if event.kind is EventKind.CREATED:
            return FieldUpdate(User, entity.author_id, increments={'post_count': 1})
        return FieldUpdate(
            User,
            entity.author_id,
            increments={'post_count': -1},
            guard={'post_count__gt': 0},
        )

    if parent is None:
        return None

    status = parent['comment_status']

    if event.kind is EventKind.CREATED:
        if status == Post.CommentStatus.HAS_COMMENTS:
            return FieldUpdate(Post, entity.post_id, increments={'comment_count': 1})
        # Assignment, not increment: also repairs a stale non-zero count.
        return FieldUpdate(
            Post,
            entity.post_id,
            assignments={
                'comment_status': Post.CommentStatus.HAS_COMMENTS,
                'comment_count': 1,
            },
        )

    if status in (Post.CommentStatus.NO_COMMENTS, Post.CommentStatus.NEVER_COMMENTED):
        return None

    assignments = {}
    if parent['comment_count'] == 1:
        assignments['comment_status'] = Post.CommentStatus.NO_COMMENTS
    return FieldUpdate(
        Post,
        entity.post_id,
        increments={'comment_count': -1},
        assignments=assignments,
        guard={'comment_count__gt': 0},
    )


def read_parent_state(event: CounterEvent) -> Optional[dict]:
    """
    Lock and read the parent post of a comment event.

    Removed posts are included: a comment may be removed after its post.
    Returns None for post events and for a missing post row.
    """
    if event.entity_type is not EntityType.COMMENT:
        return None

    with translate_store_errors(f"reading parent of {event}"):
        return (
            Post.all_objects
            .select_for_update()
            .filter(pk=event.entity.post_id)
            .values('comment_status', 'comment_count', 'deleted_at')
            .first()
        )


def execute_update(update: FieldUpdate) -> int:
    """
    Run a planned update as a single UPDATE statement.

    Raises GuardViolation when a guarded update matched nothing and
    InvariantViolation when an unguarded one did (the parent row is gone).
    """
    with translate_store_errors(f"updating {update}"):
        affected = (
            update.model.all_objects
            .filter(pk=update.pk, **update.guard)
            .update(**update.values())
        )

    if affected == 0:
        if update.guard:
            raise GuardViolation(update)
        raise InvariantViolation(f"{update.model.__name__} {update.pk} does not exist")
    return affected


def apply_counter_event(event: CounterEvent) -> int:
    """
    Read, plan and apply the counter update for an event.

    Returns the number of rows updated (0 or 1). A failed guard is a no-op;
    any other fault propagates so the enclosing transaction rolls back.
    """
    parent = read_parent_state(event)
    if event.entity_type is EntityType.COMMENT:
        if parent is None:
            raise InvariantViolation(f"Post {event.entity.post_id} does not exist")
        # Removal events still apply: the cascade removes comments of a removed post.
        if event.kind is EventKind.CREATED and parent['deleted_at'] is not None:
            raise InvariantViolation(f"Post {event.entity.post_id} is removed")

    update = plan_counter_update(event, parent)
    if update is None:
        logger.debug("No counter update for %s (parent=%s)", event, parent)
        return 0

    try:
        return execute_update(update)
    except GuardViolation as exc:
        # Counter already at its floor. Not a caller error, but it means a
        # hook fired twice or out of order somewhere.
        logger.warning("Skipped counter update for %s: %s", event, exc)
        return 0
