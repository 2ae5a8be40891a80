"""
Tests for the blog counters

Focus areas:
1. Counter rules (pure planning and applied through hooks)
2. Atomicity: a failing hook rolls back the write that triggered it
3. Post cascade: no double decrement, benign race handling
4. Read queries, consistency audit, API and management commands
"""

from io import StringIO
import random
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError, transaction
from django.db.models.query import QuerySet
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from rest_framework.test import APIClient

from .counters import (
    CounterEvent,
    EntityType,
    EventKind,
    apply_counter_event,
    entity_type_of,
    plan_counter_update,
)
from .exceptions import InvariantViolation, TransientStoreFault
from .models import Comment, Post, User
from .queries import (
    find_counter_drift,
    get_comment,
    get_most_commented_posts,
    get_post,
    get_user_posts_with_comments,
)
from .services import create_comment, create_post, create_user, remove_comment, remove_post
from .signals import dispatch

NEVER = Post.CommentStatus.NEVER_COMMENTED
HAS = Post.CommentStatus.HAS_COMMENTS
NONE_LEFT = Post.CommentStatus.NO_COMMENTS


def reload_user(user):
    return User.all_objects.get(pk=user.pk)


def reload_post(post):
    return Post.all_objects.get(pk=post.pk)


class CounterRulesTestCase(SimpleTestCase):
    """
    plan_counter_update is pure: these tests never touch the database.
    """

    def test_post_created_increments_author(self):
        update = plan_counter_update(CounterEvent.created(Post(author_id=7)))

        self.assertIs(update.model, User)
        self.assertEqual(update.pk, 7)
        self.assertEqual(update.increments, {'post_count': 1})
        self.assertEqual(update.assignments, {})
        self.assertEqual(update.guard, {})

    def test_post_removed_is_guarded_decrement(self):
        update = plan_counter_update(CounterEvent.removed(Post(author_id=7)))

        self.assertEqual(update.increments, {'post_count': -1})
        self.assertEqual(update.guard, {'post_count__gt': 0})

    def test_comment_created_on_commented_post_increments(self):
        parent = {'comment_status': HAS, 'comment_count': 4}
        update = plan_counter_update(CounterEvent.created(Comment(post_id=3)), parent)

        self.assertIs(update.model, Post)
        self.assertEqual(update.pk, 3)
        self.assertEqual(update.increments, {'comment_count': 1})
        self.assertEqual(update.assignments, {})

    def test_comment_created_on_uncommented_post_assigns(self):
        """NEVER_COMMENTED and NO_COMMENTS both reset to HAS_COMMENTS / 1."""
        for status, count in [(NEVER, 0), (NONE_LEFT, 0), (NONE_LEFT, 5)]:
            parent = {'comment_status': status, 'comment_count': count}
            update = plan_counter_update(CounterEvent.created(Comment(post_id=3)), parent)

            self.assertEqual(update.increments, {})
            self.assertEqual(update.assignments, {'comment_status': HAS, 'comment_count': 1})

    def test_comment_removed_from_uncommented_post_is_noop(self):
        for status in (NEVER, NONE_LEFT):
            parent = {'comment_status': status, 'comment_count': 0}
            self.assertIsNone(
                plan_counter_update(CounterEvent.removed(Comment(post_id=3)), parent)
            )

    def test_comment_removed_decrements(self):
        parent = {'comment_status': HAS, 'comment_count': 3}
        update = plan_counter_update(CounterEvent.removed(Comment(post_id=3)), parent)

        self.assertEqual(update.increments, {'comment_count': -1})
        self.assertEqual(update.assignments, {})
        self.assertEqual(update.guard, {'comment_count__gt': 0})

    def test_last_comment_removed_sets_no_comments(self):
        parent = {'comment_status': HAS, 'comment_count': 1}
        update = plan_counter_update(CounterEvent.removed(Comment(post_id=3)), parent)

        self.assertEqual(update.increments, {'comment_count': -1})
        self.assertEqual(update.assignments, {'comment_status': NONE_LEFT})

    def test_comment_event_without_parent_plans_nothing(self):
        self.assertIsNone(plan_counter_update(CounterEvent.created(Comment(post_id=3))))

    def test_event_tagging(self):
        event = CounterEvent.removed(Comment(post_id=3))
        self.assertEqual(event.kind, EventKind.REMOVED)
        self.assertEqual(event.entity_type, EntityType.COMMENT)

        with self.assertRaises(TypeError):
            entity_type_of(User())


class PostCountTestCase(TestCase):

    def setUp(self):
        self.user = create_user('alice', 'alice@test.com', 'pass')
        self.other = create_user('bob', 'bob@test.com', 'pass')

    def test_new_user_has_no_posts(self):
        self.assertEqual(reload_user(self.user).post_count, 0)

    def test_create_post_increments(self):
        create_post(self.user.id, 'First', 'Body')
        create_post(self.user.id, 'Second', 'Body')

        self.assertEqual(reload_user(self.user).post_count, 2)
        self.assertEqual(reload_user(self.other).post_count, 0)

    def test_removing_one_of_two_posts(self):
        """Scenario: two posts by one user, remove one."""
        p1 = create_post(self.user.id, 'First', 'Body')
        p2 = create_post(self.user.id, 'Second', 'Body')
        create_comment(p2.id, self.other.id, 'Hi')

        remove_post(p1.id)

        self.assertEqual(reload_user(self.user).post_count, 1)
        p2 = reload_post(p2)
        self.assertFalse(p2.is_removed)
        self.assertEqual(p2.comment_count, 1)
        self.assertEqual(p2.comment_status, HAS)

    def test_decrement_at_zero_is_noop(self):
        post = create_post(self.user.id, 'First', 'Body')
        User.all_objects.filter(pk=self.user.pk).update(post_count=0)

        with self.assertLogs('blog.counters', level='WARNING'):
            post.soft_delete()

        self.assertEqual(reload_user(self.user).post_count, 0)
        self.assertTrue(reload_post(post).is_removed)

    def test_create_post_for_unknown_user(self):
        with self.assertRaises(ValueError):
            create_post(999999, 'Title', 'Body')
        self.assertEqual(Post.all_objects.count(), 0)

    def test_create_post_for_removed_user(self):
        self.user.soft_delete()
        with self.assertRaises(ValueError):
            create_post(self.user.id, 'Title', 'Body')

    def test_post_count_matches_live_posts_for_any_sequence(self):
        rng = random.Random(1234)
        live = []
        for _ in range(40):
            if live and rng.random() < 0.4:
                post = live.pop(rng.randrange(len(live)))
                remove_post(post.id)
            else:
                live.append(create_post(self.user.id, 'P', 'Body'))

            self.assertEqual(reload_user(self.user).post_count, len(live))
            self.assertEqual(Post.objects.filter(author=self.user).count(), len(live))


class CommentCountTestCase(TestCase):

    def setUp(self):
        self.user = create_user('alice', 'alice@test.com', 'pass')
        self.post = create_post(self.user.id, 'Post', 'Body')

    def test_new_post_never_commented(self):
        post = reload_post(self.post)
        self.assertEqual(post.comment_count, 0)
        self.assertEqual(post.comment_status, NEVER)

    def test_comment_lifecycle_scenario(self):
        """
        A -> P1 -> C1 -> remove C1 -> C2 -> cascade P1.
        """
        self.assertEqual(reload_user(self.user).post_count, 1)

        c1 = create_comment(self.post.id, self.user.id, 'C1')
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (HAS, 1))

        remove_comment(c1.id)
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NONE_LEFT, 0))

        c2 = create_comment(self.post.id, self.user.id, 'C2')
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (HAS, 1))

        remove_post(self.post.id)
        self.assertEqual(reload_user(self.user).post_count, 0)
        self.assertTrue(reload_post(self.post).is_removed)
        self.assertTrue(Comment.all_objects.get(pk=c2.pk).is_removed)

    def test_removing_comment_twice_decrements_once(self):
        c1 = create_comment(self.post.id, self.user.id, 'C1')
        create_comment(self.post.id, self.user.id, 'C2')

        first = remove_comment(c1.id)
        second = remove_comment(c1.id)

        self.assertEqual(first.action, 'removed')
        self.assertEqual(second.action, 'already_removed')
        self.assertFalse(second.success)
        self.assertEqual(reload_post(self.post).comment_count, 1)

    def test_removal_on_no_comments_post_is_noop(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')
        Post.all_objects.filter(pk=self.post.pk).update(comment_status=NONE_LEFT, comment_count=0)

        remove_comment(comment.id)

        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NONE_LEFT, 0))

    def test_removal_on_never_commented_post_is_noop(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')
        Post.all_objects.filter(pk=self.post.pk).update(comment_status=NEVER, comment_count=0)

        result = remove_comment(comment.id)

        self.assertTrue(result.success)
        self.assertTrue(Comment.all_objects.get(pk=comment.pk).is_removed)
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NEVER, 0))

    def test_removal_never_goes_negative(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')
        Post.all_objects.filter(pk=self.post.pk).update(comment_count=0)

        with self.assertLogs('blog.counters', level='WARNING'):
            remove_comment(comment.id)

        post = reload_post(self.post)
        self.assertEqual(post.comment_count, 0)
        self.assertEqual(post.comment_status, HAS)

    def test_create_recovers_from_stale_count(self):
        Post.all_objects.filter(pk=self.post.pk).update(comment_status=NONE_LEFT, comment_count=5)

        create_comment(self.post.id, self.user.id, 'C1')

        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (HAS, 1))

    def test_comment_on_removed_post_rejected(self):
        remove_post(self.post.id)
        with self.assertRaises(ValueError):
            create_comment(self.post.id, self.user.id, 'Late')

    def test_comment_created_under_removed_post_aborts(self):
        remove_post(self.post.id)

        with self.assertRaises(InvariantViolation):
            Comment.objects.create(post_id=self.post.id, author_id=self.user.id, content='Late')

        self.assertEqual(Comment.all_objects.count(), 0)
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NONE_LEFT, 0))

    def test_post_removed_between_check_and_insert(self):
        insert = Comment.objects.create

        def remove_then_insert(**kwargs):
            remove_post(self.post.id)
            return insert(**kwargs)

        with patch.object(Comment.objects, 'create', side_effect=remove_then_insert):
            with self.assertRaises(InvariantViolation):
                create_comment(self.post.id, self.user.id, 'Racing')

        self.assertEqual(Comment.objects.filter(post_id=self.post.id).count(), 0)
        post = reload_post(self.post)
        self.assertNotEqual(post.comment_status, HAS)
        self.assertEqual(post.comment_count, 0)

    def test_comment_event_without_parent_row_aborts(self):
        orphan = Comment(post_id=999999, author_id=self.user.id, content='Orphan')

        with self.assertRaises(InvariantViolation):
            apply_counter_event(CounterEvent.created(orphan))
        with self.assertRaises(InvariantViolation):
            apply_counter_event(CounterEvent.removed(orphan))

    def test_removed_comment_keeps_foreign_keys(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')
        remove_comment(comment.id)

        self.assertIsNone(get_comment(comment.id))
        removed = get_comment(comment.id, include_removed=True)
        self.assertEqual(removed.post_id, self.post.id)
        self.assertEqual(removed.author_id, self.user.id)

    def test_hook_sees_pre_removal_instance(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')
        seen = []

        def spy(event):
            seen.append((event.entity.deleted_at, event.entity.post_id))
            return apply_counter_event(event)

        with patch('blog.signals.apply_counter_event', side_effect=spy):
            comment.soft_delete()

        self.assertEqual(seen, [(None, self.post.id)])
        self.assertIsNotNone(comment.deleted_at)

    def test_comment_count_matches_live_comments_for_any_sequence(self):
        rng = random.Random(99)
        live = []
        created_any = False
        for _ in range(40):
            if live and rng.random() < 0.45:
                comment = live.pop(rng.randrange(len(live)))
                remove_comment(comment.id)
            else:
                live.append(create_comment(self.post.id, self.user.id, 'C'))
                created_any = True

            post = reload_post(self.post)
            self.assertEqual(post.comment_count, len(live))
            if live:
                self.assertEqual(post.comment_status, HAS)
            elif created_any:
                self.assertEqual(post.comment_status, NONE_LEFT)
        self.assertEqual(find_counter_drift(), [])


class HookAtomicityTestCase(TestCase):
    """A fault inside a hook must roll back the write that triggered it."""

    def setUp(self):
        self.user = create_user('alice', 'alice@test.com', 'pass')
        self.post = create_post(self.user.id, 'Post', 'Body')

    def test_failing_create_hook_rolls_back_post(self):
        with patch('blog.signals.apply_counter_event', side_effect=TransientStoreFault('boom')):
            with self.assertRaises(TransientStoreFault):
                create_post(self.user.id, 'Doomed', 'Body')

        self.assertEqual(Post.all_objects.count(), 1)
        self.assertEqual(reload_user(self.user).post_count, 1)

    def test_store_fault_in_counter_update_rolls_back_comment(self):
        with patch.object(QuerySet, 'update', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(TransientStoreFault):
                create_comment(self.post.id, self.user.id, 'Doomed')

        self.assertEqual(Comment.all_objects.count(), 0)
        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NEVER, 0))

    def test_failing_remove_hook_keeps_comment_live(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')

        with patch('blog.signals.apply_counter_event', side_effect=TransientStoreFault('boom')):
            with self.assertRaises(TransientStoreFault):
                remove_comment(comment.id)

        self.assertFalse(Comment.all_objects.get(pk=comment.pk).is_removed)
        self.assertEqual(reload_post(self.post).comment_count, 1)

    def test_failing_cascade_rolls_back_everything(self):
        comment = create_comment(self.post.id, self.user.id, 'C1')

        with patch('blog.signals.apply_counter_event', side_effect=TransientStoreFault('boom')):
            with self.assertRaises(TransientStoreFault):
                remove_post(self.post.id)

        post = reload_post(self.post)
        self.assertFalse(post.is_removed)
        self.assertEqual((post.comment_status, post.comment_count), (HAS, 1))
        self.assertFalse(Comment.all_objects.get(pk=comment.pk).is_removed)
        self.assertEqual(reload_user(self.user).post_count, 1)

    def test_caller_abort_discards_counter_updates(self):
        class Abort(Exception):
            pass

        with self.assertRaises(Abort):
            with transaction.atomic():
                create_comment(self.post.id, self.user.id, 'C1')
                create_post(self.user.id, 'Second', 'Body')
                raise Abort()

        post = reload_post(self.post)
        self.assertEqual((post.comment_status, post.comment_count), (NEVER, 0))
        self.assertEqual(reload_user(self.user).post_count, 1)


class HookOutsideTransactionTestCase(TransactionTestCase):

    def test_dispatch_requires_transaction(self):
        user = create_user('alice', 'alice@test.com', 'pass')
        post = create_post(user.id, 'Post', 'Body')

        with self.assertRaises(InvariantViolation):
            dispatch(CounterEvent.created(post))

        self.assertEqual(reload_user(user).post_count, 1)


class PostCascadeTestCase(TestCase):

    def setUp(self):
        self.author = create_user('alice', 'alice@test.com', 'pass')
        self.reader = create_user('bob', 'bob@test.com', 'pass')
        self.post = create_post(self.author.id, 'Post', 'Body')
        self.comments = [
            create_comment(self.post.id, self.reader.id, f'C{i}') for i in range(3)
        ]

    def test_cascade_removes_post_and_comments(self):
        result = remove_post(self.post.id)

        self.assertTrue(result.success)
        self.assertEqual(result.action, 'removed')
        self.assertEqual(result.comments_removed, 3)

        post = reload_post(self.post)
        self.assertTrue(post.is_removed)
        self.assertEqual((post.comment_status, post.comment_count), (NONE_LEFT, 0))
        self.assertFalse(Comment.objects.filter(post_id=self.post.id).exists())
        self.assertEqual(Comment.all_objects.filter(post_id=self.post.id).count(), 3)
        self.assertEqual(reload_user(self.author).post_count, 0)

    def test_cascade_skips_already_removed_comments(self):
        remove_comment(self.comments[0].id)

        result = remove_post(self.post.id)

        self.assertEqual(result.comments_removed, 2)
        self.assertEqual(reload_post(self.post).comment_count, 0)

    def test_cascade_fires_only_the_post_hook(self):
        with patch('blog.signals.apply_counter_event', wraps=apply_counter_event) as spy:
            remove_post(self.post.id)

        events = [call.args[0] for call in spy.call_args_list]
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].entity_type, EntityType.POST)
        self.assertEqual(events[0].kind, EventKind.REMOVED)

    def test_cascade_of_uncommented_post(self):
        empty = create_post(self.author.id, 'Empty', 'Body')

        result = remove_post(empty.id)

        self.assertEqual(result.comments_removed, 0)
        self.assertEqual(reload_post(empty).comment_status, NONE_LEFT)
        self.assertEqual(reload_user(self.author).post_count, 1)

    def test_cascade_of_removed_post(self):
        remove_post(self.post.id)

        result = remove_post(self.post.id)

        self.assertFalse(result.success)
        self.assertEqual(result.action, 'already_removed')
        self.assertEqual(reload_user(self.author).post_count, 0)

    def test_cascade_race_leaves_post_alone(self):
        with patch('blog.services._confirm_live', side_effect=InvariantViolation('gone')):
            result = remove_post(self.post.id)

        self.assertEqual(result.action, 'already_removed')
        self.assertEqual(result.comments_removed, 3)
        self.assertFalse(reload_post(self.post).is_removed)
        self.assertEqual(reload_user(self.author).post_count, 1)

    def test_cascade_unknown_post(self):
        with self.assertRaises(ValueError):
            remove_post(999999)


class QueriesTestCase(TestCase):

    def setUp(self):
        self.alice = create_user('alice', 'alice@test.com', 'pass')
        self.bob = create_user('bob', 'bob@test.com', 'pass')
        self.p1 = create_post(self.alice.id, 'P1', 'Body')
        self.p2 = create_post(self.alice.id, 'P2', 'Body')
        self.p3 = create_post(self.bob.id, 'P3', 'Body')

    def test_find_by_id_hides_removed(self):
        remove_post(self.p3.id)
        self.assertIsNone(get_post(self.p3.id))
        self.assertEqual(get_post(self.p3.id, include_removed=True).id, self.p3.id)

    def test_user_posts_with_comments(self):
        c1 = create_comment(self.p1.id, self.bob.id, 'one')
        c2 = create_comment(self.p1.id, self.alice.id, 'two')
        gone = create_comment(self.p1.id, self.bob.id, 'gone')
        create_comment(self.p2.id, self.bob.id, 'three')
        remove_comment(gone.id)

        with self.assertNumQueries(3):
            result = get_user_posts_with_comments(self.alice.id)
            posts = result['posts']
            by_post = {p.id: [c.id for c in p.live_comments] for p in posts}

        self.assertEqual(result['user'], self.alice)
        self.assertEqual([p.id for p in posts], [self.p1.id, self.p2.id])
        self.assertEqual(by_post[self.p1.id], [c1.id, c2.id])
        self.assertEqual(len(by_post[self.p2.id]), 1)

    def test_user_posts_unknown_user(self):
        self.assertIsNone(get_user_posts_with_comments(999999))

    def test_most_commented_returns_ties(self):
        create_comment(self.p1.id, self.bob.id, 'a')
        create_comment(self.p1.id, self.bob.id, 'b')
        create_comment(self.p3.id, self.alice.id, 'c')
        create_comment(self.p3.id, self.alice.id, 'd')
        create_comment(self.p2.id, self.bob.id, 'e')

        top = get_most_commented_posts()

        self.assertEqual([p.id for p in top], [self.p1.id, self.p3.id])
        self.assertEqual(top[0].live_comment_count, 2)

    def test_most_commented_ignores_removed_rows(self):
        c = create_comment(self.p1.id, self.bob.id, 'a')
        create_comment(self.p1.id, self.bob.id, 'b')
        create_comment(self.p2.id, self.bob.id, 'c')
        remove_comment(c.id)
        remove_post(self.p1.id)

        self.assertEqual([p.id for p in get_most_commented_posts()], [self.p2.id])

    def test_most_commented_empty(self):
        self.assertEqual(get_most_commented_posts(), [])

    def test_no_drift_after_normal_operations(self):
        c = create_comment(self.p1.id, self.bob.id, 'a')
        create_comment(self.p2.id, self.bob.id, 'b')
        remove_comment(c.id)
        remove_post(self.p3.id)

        self.assertEqual(find_counter_drift(), [])

    def test_drift_is_reported(self):
        create_comment(self.p1.id, self.bob.id, 'a')
        User.all_objects.filter(pk=self.bob.pk).update(post_count=4)
        Post.all_objects.filter(pk=self.p1.pk).update(comment_count=2)
        Post.all_objects.filter(pk=self.p2.pk).update(comment_status=NONE_LEFT)

        drift = {(d['model'], d['id'], d['field']): d for d in find_counter_drift()}

        self.assertEqual(len(drift), 3)
        self.assertEqual(drift[('User', self.bob.id, 'post_count')]['expected'], 1)
        self.assertEqual(drift[('Post', self.p1.id, 'comment_count')]['stored'], 2)
        self.assertEqual(
            drift[('Post', self.p2.id, 'comment_status')]['expected'],
            NEVER.value
        )


class ApiTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = create_user('alice', 'alice@test.com', 'pass')

    def test_create_user(self):
        response = self.client.post(
            '/api/users/',
            {'username': 'bob', 'email': 'bob@test.com', 'password': 'secret'},
            format='json'
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['post_count'], 0)
        self.assertNotIn('password', response.data)
        self.assertNotEqual(User.objects.get(username='bob').password, 'secret')

    def test_duplicate_username_rejected(self):
        response = self.client.post('/api/users/', {'username': 'alice'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_post_and_comment_flow(self):
        response = self.client.post(
            '/api/posts/',
            {'author_id': self.user.id, 'title': 'Hello', 'content': 'World'},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['comment_status'], NEVER.value)
        post_id = response.data['id']

        response = self.client.post(
            f'/api/posts/{post_id}/comments/',
            {'author_id': self.user.id, 'content': 'First!'},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        comment_id = response.data['id']

        response = self.client.get(f'/api/posts/{post_id}/')
        self.assertEqual(response.data['comment_count'], 1)
        self.assertEqual(response.data['comment_status'], HAS.value)
        self.assertEqual(len(response.data['comments']), 1)

        response = self.client.delete(f'/api/comments/{comment_id}/')
        self.assertEqual(response.data['action'], 'removed')

        response = self.client.get(f'/api/posts/{post_id}/')
        self.assertEqual(response.data['comment_status'], NONE_LEFT.value)
        self.assertEqual(response.data['comments'], [])

        response = self.client.delete(f'/api/posts/{post_id}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['action'], 'removed')

        self.assertEqual(self.client.get(f'/api/posts/{post_id}/').status_code, 404)
        self.assertEqual(reload_user(self.user).post_count, 0)

    def test_counters_cannot_be_set_by_callers(self):
        response = self.client.post(
            '/api/posts/',
            {'author_id': self.user.id, 'title': 'Hi', 'content': 'Body', 'comment_count': 50},
            format='json'
        )
        self.assertEqual(response.data['comment_count'], 0)

    def test_user_detail(self):
        post = create_post(self.user.id, 'Hello', 'World')
        create_comment(post.id, self.user.id, 'Mine')

        response = self.client.get(f'/api/users/{self.user.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['post_count'], 1)
        self.assertEqual(len(response.data['posts']), 1)
        self.assertEqual(response.data['posts'][0]['comments'][0]['content'], 'Mine')

    def test_not_found(self):
        self.assertEqual(self.client.get('/api/users/999999/').status_code, 404)
        self.assertEqual(self.client.get('/api/posts/999999/').status_code, 404)
        self.assertEqual(self.client.delete('/api/posts/999999/').status_code, 404)
        self.assertEqual(self.client.delete('/api/comments/999999/').status_code, 404)
        response = self.client.post(
            '/api/posts/999999/comments/',
            {'author_id': self.user.id, 'content': 'x'},
            format='json'
        )
        self.assertEqual(response.status_code, 404)

    def test_store_fault_maps_to_503(self):
        with patch('blog.views.create_post', side_effect=TransientStoreFault('down')):
            response = self.client.post(
                '/api/posts/',
                {'author_id': self.user.id, 'title': 'Hi', 'content': 'Body'},
                format='json'
            )
        self.assertEqual(response.status_code, 503)

    def test_most_commented_and_drift(self):
        post = create_post(self.user.id, 'Hello', 'World')
        create_comment(post.id, self.user.id, 'One')

        response = self.client.get('/api/posts/most-commented/')
        self.assertEqual([p['id'] for p in response.data['posts']], [post.id])
        self.assertEqual(response.data['posts'][0]['live_comment_count'], 1)

        response = self.client.get('/api/counters/drift/')
        self.assertTrue(response.data['consistent'])
        self.assertEqual(response.data['drift'], [])


class ManagementCommandTestCase(TestCase):

    def test_seed_data(self):
        out = StringIO()
        call_command('seed_data', stdout=out)

        zhangsan = User.objects.get(username='zhangsan')
        lisi = User.objects.get(username='lisi')
        self.assertEqual(zhangsan.post_count, 2)
        self.assertEqual(lisi.post_count, 1)

        first = Post.objects.get(title="zhangsan's first post")
        self.assertEqual((first.comment_status, first.comment_count), (HAS, 3))
        self.assertEqual(Comment.objects.count(), 5)
        self.assertIn('post_count=2', out.getvalue())
        self.assertEqual(find_counter_drift(), [])

    def test_seed_data_clear(self):
        call_command('seed_data', stdout=StringIO())
        call_command('seed_data', '--clear', stdout=StringIO())

        self.assertEqual(Post.objects.count(), 3)
        self.assertEqual(User.objects.get(username='zhangsan').post_count, 2)

    def test_check_counters(self):
        user = create_user('alice', 'alice@test.com', 'pass')
        create_post(user.id, 'Hello', 'World')

        out = StringIO()
        call_command('check_counters', stdout=out)
        self.assertIn('consistent', out.getvalue())

        User.all_objects.filter(pk=user.pk).update(post_count=3)
        out = StringIO()
        with self.assertRaises(CommandError):
            call_command('check_counters', stdout=out)
        self.assertIn('post_count stored=3 expected=1', out.getvalue())
