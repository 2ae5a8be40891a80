"""
Management command to seed the database with sample data.

Everything is created through blog.services, so every counter in the
resulting data set was produced by the counter hooks.

Usage: python manage.py seed_data [--clear]
"""

from django.core.management.base import BaseCommand

from blog.models import User, Post, Comment
from blog.services import create_user, create_post, create_comment


SAMPLE_DATA = [
    {
        'username': 'zhangsan',
        'email': 'zhangsan@example.com',
        'posts': [
            {
                'title': "zhangsan's first post",
                'content': "Content of zhangsan's first post",
                'comments': ['Great post 111!', 'Great post 112!', 'Great post 113!'],
            },
            {
                'title': "zhangsan's second post",
                'content': "Content of zhangsan's second post",
                'comments': ['Great post 121!'],
            },
        ],
    },
    {
        'username': 'lisi',
        'email': 'lisi@example.com',
        'posts': [
            {
                'title': "lisi's first post",
                'content': "Content of lisi's first post",
                'comments': ['Great post 211!'],
            },
        ],
    },
]


class Command(BaseCommand):
    help = 'Seed the database with sample users, posts and comments'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Physically delete existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Comment.all_objects.all().delete()
            Post.all_objects.all().delete()
            User.all_objects.all().delete()

        users = []
        for user_data in SAMPLE_DATA:
            user = User.all_objects.filter(username=user_data['username']).first()
            if user is None:
                user = create_user(user_data['username'], user_data['email'], 'password123')

            # Comments are written by the post's author, as in the sample set
            for post_data in user_data['posts']:
                post = create_post(user.id, post_data['title'], post_data['content'])
                for text in post_data['comments']:
                    create_comment(post.id, user.id, text)

            users.append(user)

        self.stdout.write(self.style.SUCCESS('Seeded sample data:'))
        for user in users:
            user.refresh_from_db()
            self.stdout.write(f'  {user.username}: post_count={user.post_count}')
            for post in Post.objects.filter(author=user).order_by('id'):
                self.stdout.write(
                    f'    {post.title}: comment_count={post.comment_count} '
                    f'({post.comment_status})'
                )
