"""
Write Services & Post Cascade
=============================

Every create/remove goes through here. Each function is one
transaction.atomic() block: the write, its counter hook and any follow-up
either all commit or all roll back.

Counters are never passed in by callers. They are produced by the hooks in
signals.py, except in remove_post, which resets the post directly.

POST CASCADE (remove_post):
---------------------------
One transaction:
1. Reset post: comment_status = NO_COMMENTS, comment_count = 0
2. Bulk soft-remove the post's comments (QuerySet.update, NO hooks)
3. Confirm the post is still live, then soft-remove it
   (fires POST REMOVED -> author.post_count - 1)

Step 2 must not go through Comment.soft_delete(): the per-comment rule would
decrement the counter step 1 already zeroed.
"""

import logging
from typing import Literal

from django.contrib.auth.hashers import make_password
from django.db import transaction

from .exceptions import InvariantViolation, translate_store_errors
from .models import Comment, Post, User

logger = logging.getLogger(__name__)


class RemovalResult:
    """Result of a remove operation."""
    def __init__(
        self,
        success: bool,
        action: Literal['removed', 'already_removed'],
        comments_removed: int = 0
    ):
        self.success = success
        self.action = action
        self.comments_removed = comments_removed


def create_user(username: str, email: str = '', password: str = '') -> User:
    """
    Create a user. Users have no counter hook; post_count starts at 0.

    A duplicate username raises IntegrityError.
    """
    return User.objects.create(
        username=username,
        email=email,
        password=make_password(password or None),
    )


def create_post(author_id: int, title: str, content: str) -> Post:
    """
    Create a post. The POST CREATED hook bumps the author's post_count in
    the same transaction.
    """
    with translate_store_errors("creating post"), transaction.atomic():
        if not User.objects.filter(id=author_id).exists():
            raise ValueError(f"User {author_id} does not exist")

        post = Post.objects.create(author_id=author_id, title=title, content=content)

    logger.info("Created post %s for user %s", post.pk, author_id)
    return post


def create_comment(post_id: int, author_id: int, content: str) -> Comment:
    """
    Comment on a live post. The COMMENT CREATED hook updates the post's
    comment_count / comment_status in the same transaction.
    """
    with translate_store_errors("creating comment"), transaction.atomic():
        # Queues behind a remove_post cascade holding the same row.
        if Post.objects.select_for_update().filter(id=post_id).first() is None:
            raise ValueError(f"Post {post_id} does not exist")
        if not User.objects.filter(id=author_id).exists():
            raise ValueError(f"User {author_id} does not exist")

        comment = Comment.objects.create(post_id=post_id, author_id=author_id, content=content)

    logger.info("Created comment %s on post %s", comment.pk, post_id)
    return comment


def remove_comment(comment_id: int) -> RemovalResult:
    """
    Soft-remove a single comment through the hook path.

    Removing an already-removed comment changes nothing.
    """
    try:
        comment = Comment.all_objects.get(id=comment_id)
    except Comment.DoesNotExist:
        raise ValueError(f"Comment {comment_id} does not exist")

    with translate_store_errors(f"removing comment {comment_id}"):
        removed = comment.soft_delete()

    if not removed:
        return RemovalResult(success=False, action='already_removed')

    logger.info("Removed comment %s from post %s", comment_id, comment.post_id)
    return RemovalResult(success=True, action='removed')


def remove_post(post_id: int) -> RemovalResult:
    """
    Cascade-remove a post and its comments as one unit.

    If the post turns out to be removed already at step 3 (a concurrent
    removal won the race), steps 1-2 still commit and the post is left
    alone.
    """
    with translate_store_errors(f"removing post {post_id}"), transaction.atomic():
        post = (
            Post.all_objects
            .select_for_update()
            .filter(id=post_id)
            .first()
        )
        if post is None:
            raise ValueError(f"Post {post_id} does not exist")

        # Step 1: reset counters before any comment goes away
        Post.all_objects.filter(id=post_id).update(
            comment_status=Post.CommentStatus.NO_COMMENTS,
            comment_count=0,
        )

        # Step 2: bulk removal, no per-comment hooks
        comments_removed = Comment.all_objects.filter(post_id=post_id).soft_delete()

        # Step 3: confirm, then remove the post (fires POST REMOVED)
        try:
            _confirm_live(post)
        except InvariantViolation as exc:
            logger.info("Cascade for post %s stopped: %s", post_id, exc)
            return RemovalResult(
                success=False,
                action='already_removed',
                comments_removed=comments_removed
            )

        if not post.soft_delete():
            raise InvariantViolation(f"Post {post_id} was removed during its own cascade")

    logger.info(
        "Removed post %s with %s comment(s); author %s",
        post_id, comments_removed, post.author_id
    )
    return RemovalResult(success=True, action='removed', comments_removed=comments_removed)


def _confirm_live(post: Post) -> None:
    if not Post.objects.filter(id=post.pk).exists():
        raise InvariantViolation(f"Post {post.pk} is already removed")
