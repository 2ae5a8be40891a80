"""
Lifecycle Hook Dispatcher
=========================

Translates Django signals into CounterEvents and hands them to the rules
engine, synchronously, inside the transaction of the triggering write.

Per triggering write:  PENDING -> HOOK_EXECUTING -> COMMITTED | ABORTED

- post_save(created=True) for Post/Comment  -> CREATED
- soft_deleted for Post/Comment             -> REMOVED

SoftDeleteModel.save() and SoftDeleteModel.soft_delete() both wrap the write
in transaction.atomic(), so a fault raised here rolls back the write itself.

Signals do NOT fire on QuerySet.update(), which is how the post cascade
removes comments in bulk without per-comment arithmetic.

There is no hook for User.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .counters import CounterEvent, apply_counter_event
from .exceptions import CounterError, InvariantViolation
from .models import Comment, Post, soft_deleted

logger = logging.getLogger(__name__)


def dispatch(event: CounterEvent) -> None:
    if not transaction.get_connection().in_atomic_block:
        raise InvariantViolation(f"Counter hook for {event} must run inside a transaction")

    logger.debug("HOOK_EXECUTING %s", event)
    try:
        apply_counter_event(event)
    except CounterError:
        logger.error("ABORTED %s: counter update failed", event)
        raise

    transaction.on_commit(lambda: logger.debug("COMMITTED %s", event))


@receiver(post_save, sender=Post)
@receiver(post_save, sender=Comment)
def dispatch_created(sender, instance, created, raw=False, **kwargs):
    # raw saves come from fixture loading; their counters are part of the fixture
    if created and not raw:
        dispatch(CounterEvent.created(instance))


@receiver(soft_deleted, sender=Post)
@receiver(soft_deleted, sender=Comment)
def dispatch_removed(sender, instance, **kwargs):
    dispatch(CounterEvent.removed(instance))
