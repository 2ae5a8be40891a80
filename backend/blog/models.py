"""
Data Models for the blog counters app
======================================

Design Philosophy:
------------------
1. Every entity is soft-deletable
   - Removal sets `deleted_at`; the row and its foreign keys stay in place
   - `objects` hides removed rows, `all_objects` sees everything
   - No application code path issues a physical DELETE (FKs use PROTECT)

2. Counters live on the rows they describe
   - User.post_count, Post.comment_count, Post.comment_status
   - Mutated only by blog.counters (via signals) and the post cascade
   - Always written with UPDATE ... SET x = x + n, never read-modify-write

3. One post has many comments
   - Comment.post is a plain ForeignKey with related_name='comments'

Indexes Strategy:
-----------------
- post.author + deleted_at: a user's live posts (post_count audit)
- comment.post + deleted_at: a post's live comments (cascade, audit)
- comment.post + created_at: listing comments in order
"""

from django.db import models, transaction
from django.dispatch import Signal
from django.utils import timezone


# Sent inside the removing transaction, after the marker is written to the
# row but before the instance's own `deleted_at` is touched.
# Arguments: sender (model class), instance.
soft_deleted = Signal()


class SoftDeleteQuerySet(models.QuerySet):

    def live(self):
        return self.filter(deleted_at__isnull=True)

    def removed(self):
        return self.filter(deleted_at__isnull=False)

    def soft_delete(self) -> int:
        """
        Mark every live row in this queryset as removed with ONE update.

        IMPORTANT: QuerySet.update() does not send signals, so no per-row
        lifecycle hook runs. The post cascade relies on exactly this.
        """
        return self.live().update(deleted_at=timezone.now())


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """Default manager: removed rows are invisible."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


AllObjectsManager = models.Manager.from_queryset(SoftDeleteQuerySet)


class SoftDeleteModel(models.Model):
    """
    Abstract base for soft-deletable records.

    save() and soft_delete() both open an atomic block, so receivers of
    post_save / soft_deleted always run in the same transaction as the
    write that triggered them.
    """
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, default=None)

    objects = SoftDeleteManager()
    all_objects = AllObjectsManager()

    class Meta:
        abstract = True

    @property
    def is_removed(self) -> bool:
        return self.deleted_at is not None

    def save(self, *args, **kwargs):
        with transaction.atomic(using=kwargs.get('using')):
            super().save(*args, **kwargs)

    def soft_delete(self) -> bool:
        """
        Soft-remove this record.

        Returns False (and fires nothing) if the row was already removed.
        """
        removed_at = timezone.now()
        with transaction.atomic():
            marked = (
                type(self).all_objects
                .filter(pk=self.pk, deleted_at__isnull=True)
                .update(deleted_at=removed_at)
            )
            if not marked:
                return False

            soft_deleted.send(sender=type(self), instance=self)

        self.deleted_at = removed_at
        return True


class User(SoftDeleteModel):
    """
    Blog user.

    post_count == number of this user's posts with deleted_at unset.
    """
    username = models.CharField(max_length=150, unique=True)
    email = models.EmailField(blank=True)
    # Stored as a Django password hash, never as plain text.
    password = models.CharField(max_length=128)

    post_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.username


class Post(SoftDeleteModel):
    """
    A post written by a user.

    comment_status is a tri-state:
    - NEVER_COMMENTED: no comment was ever created for this post
    - HAS_COMMENTS:    comment_count > 0
    - NO_COMMENTS:     comments existed, all have since been removed
    """

    class CommentStatus(models.TextChoices):
        NEVER_COMMENTED = 'NEVER_COMMENTED', 'Never commented'
        HAS_COMMENTS = 'HAS_COMMENTS', 'Has comments'
        NO_COMMENTS = 'NO_COMMENTS', 'No comments'

    author = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='posts',
    )
    title = models.CharField(max_length=300)
    content = models.TextField()

    comment_count = models.PositiveIntegerField(default=0)
    comment_status = models.CharField(
        max_length=20,
        choices=CommentStatus.choices,
        default=CommentStatus.NEVER_COMMENTED,
    )

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['author', 'deleted_at'], name='post_author_live_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} (post {self.pk})"


class Comment(SoftDeleteModel):
    author = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='comments',
    )
    post = models.ForeignKey(
        Post,
        on_delete=models.PROTECT,
        related_name='comments',
    )
    content = models.TextField()

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['post', 'deleted_at'], name='comment_post_live_idx'),
            models.Index(fields=['post', 'created_at'], name='comment_post_created_idx'),
        ]

    def __str__(self):
        return f"Comment {self.pk} on post {self.post_id}"
