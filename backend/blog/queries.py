"""
Read Queries
============

Nothing in this module writes. Counters are read as stored; the only place
they are recomputed from source rows is find_counter_drift(), which reports
differences and leaves repairs to a human.

All "live" filters mean deleted_at IS NULL.
"""

from typing import List, Optional, TypedDict

from django.db.models import Count, Max, Prefetch, Q

from .models import Comment, Post, User


class CounterDrift(TypedDict):
    """One stored counter that disagrees with its source rows."""
    model: str
    id: int
    field: str
    stored: object
    expected: object


def get_user(user_id: int, include_removed: bool = False) -> Optional[User]:
    manager = User.all_objects if include_removed else User.objects
    return manager.filter(id=user_id).first()


def get_post(post_id: int, include_removed: bool = False) -> Optional[Post]:
    manager = Post.all_objects if include_removed else Post.objects
    return manager.select_related('author').filter(id=post_id).first()


def get_comment(comment_id: int, include_removed: bool = False) -> Optional[Comment]:
    manager = Comment.all_objects if include_removed else Comment.objects
    return manager.select_related('author').filter(id=comment_id).first()


def get_live_comments_for_post(post_id: int) -> List[Comment]:
    """
    All live comments of a post, oldest first, authors joined.

    Query: 1
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .select_related('author')
        .order_by('created_at', 'id')
    )


def get_user_posts_with_comments(user_id: int) -> Optional[dict]:
    """
    A user with their live posts, each with its live comments.

    Queries: 3 (user, posts, comments) regardless of how many posts.

    Returns {'user': User, 'posts': [Post, ...]} where every post carries
    `live_comments`, or None for an unknown/removed user.
    """
    user = get_user(user_id)
    if user is None:
        return None

    posts = list(
        Post.objects
        .filter(author_id=user_id)
        .prefetch_related(
            Prefetch(
                'comments',
                queryset=Comment.objects.select_related('author').order_by('created_at', 'id'),
                to_attr='live_comments',
            )
        )
        .order_by('created_at', 'id')
    )
    return {'user': user, 'posts': posts}


def get_most_commented_posts() -> List[Post]:
    """
    Live posts with the highest number of live comments.

    Ties are all returned, ordered by id. Empty when no live post has a
    live comment.

    EQUIVALENT SQL:
    ---------------
    SELECT p.*, COUNT(c.id) AS live_comment_count
    FROM blog_post p
    LEFT JOIN blog_comment c ON c.post_id = p.id AND c.deleted_at IS NULL
    WHERE p.deleted_at IS NULL
    GROUP BY p.id
    HAVING COUNT(c.id) = (max over the same grouping)
    """
    annotated = Post.objects.annotate(
        live_comment_count=Count('comments', filter=Q(comments__deleted_at__isnull=True))
    )
    top = annotated.aggregate(top=Max('live_comment_count'))['top']
    if not top:
        return []

    return list(
        annotated
        .filter(live_comment_count=top)
        .select_related('author')
        .order_by('id')
    )


def find_counter_drift() -> List[CounterDrift]:
    """
    Compare stored counters of live users and posts with their source rows.

    Queries: 2 grouped aggregates.

    Removed posts are skipped: the cascade leaves them at NO_COMMENTS even
    when they were never commented.
    """
    drift: List[CounterDrift] = []

    users = (
        User.objects
        .annotate(actual=Count('posts', filter=Q(posts__deleted_at__isnull=True)))
        .values('id', 'post_count', 'actual')
        .order_by('id')
    )
    for row in users:
        if row['post_count'] != row['actual']:
            drift.append(CounterDrift(
                model='User', id=row['id'], field='post_count',
                stored=row['post_count'], expected=row['actual'],
            ))

    posts = (
        Post.objects
        .annotate(
            live=Count('comments', filter=Q(comments__deleted_at__isnull=True)),
            ever=Count('comments'),
        )
        .values('id', 'comment_count', 'comment_status', 'live', 'ever')
        .order_by('id')
    )
    for row in posts:
        if row['comment_count'] != row['live']:
            drift.append(CounterDrift(
                model='Post', id=row['id'], field='comment_count',
                stored=row['comment_count'], expected=row['live'],
            ))

        expected_status = expected_comment_status(row['live'], row['ever'])
        if row['comment_status'] != expected_status:
            drift.append(CounterDrift(
                model='Post', id=row['id'], field='comment_status',
                stored=row['comment_status'], expected=expected_status.value,
            ))

    return drift


def expected_comment_status(live_comments: int, all_comments: int) -> Post.CommentStatus:
    if live_comments > 0:
        return Post.CommentStatus.HAS_COMMENTS
    if all_comments == 0:
        return Post.CommentStatus.NEVER_COMMENTED
    return Post.CommentStatus.NO_COMMENTS
