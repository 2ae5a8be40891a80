"""
DRF Views
=========

API endpoints for the blog app.

AUTHENTICATION NOTE:
--------------------
There is no authentication; the acting user is passed as `author_id`.
Writes go through services.py, which owns the transactions.
"""

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .queries import (
    find_counter_drift,
    get_live_comments_for_post,
    get_most_commented_posts,
    get_post,
    get_user_posts_with_comments,
)
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    CounterDriftSerializer,
    MostCommentedPostSerializer,
    PostCreateSerializer,
    PostDetailSerializer,
    PostSerializer,
    RemovalResultSerializer,
    UserCreateSerializer,
    UserDetailSerializer,
)
from .services import create_comment, create_post, create_user, remove_comment, remove_post


class UserCreateView(APIView):
    """
    POST /api/users/

    Body: { "username": "...", "email": "...", "password": "..." }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = create_user(**serializer.validated_data)
        return Response(UserCreateSerializer(user).data, status=status.HTTP_201_CREATED)


class UserDetailView(APIView):
    """
    GET /api/users/<id>/

    User with their live posts and each post's live comments.

    QUERY COUNT: 3
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        result = get_user_posts_with_comments(user_id)
        if result is None:
            return Response(
                {'error': 'User not found'},
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = UserDetailSerializer(result['user'], context={'posts': result['posts']})
        return Response(serializer.data)


class PostCreateView(APIView):
    """
    POST /api/posts/

    Body: { "author_id": 1, "title": "...", "content": "..." }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            post = create_post(**serializer.validated_data)
        except ValueError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_404_NOT_FOUND
            )

        post.refresh_from_db()
        return Response(PostSerializer(post).data, status=status.HTTP_201_CREATED)


class PostDetailView(APIView):
    """
    GET    /api/posts/<id>/   post with live comments
    DELETE /api/posts/<id>/   cascade-remove the post and its comments
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, post_id):
        post = get_post(post_id)
        if not post:
            return Response(
                {'error': 'Post not found'},
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = PostDetailSerializer(
            post,
            context={'comments': get_live_comments_for_post(post_id)}
        )
        return Response(serializer.data)

    def delete(self, request, post_id):
        try:
            result = remove_post(post_id)
        except ValueError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(RemovalResultSerializer(result).data)


class CommentCreateView(APIView):
    """
    POST /api/posts/<post_id>/comments/

    Body: { "author_id": 1, "content": "..." }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request, post_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            comment = create_comment(post_id=post_id, **serializer.validated_data)
        except ValueError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_404_NOT_FOUND
            )

        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    """
    DELETE /api/comments/<id>/
    """
    permission_classes = [permissions.AllowAny]

    def delete(self, request, comment_id):
        try:
            result = remove_comment(comment_id)
        except ValueError as e:
            return Response(
                {'error': str(e)},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(RemovalResultSerializer(result).data)


class MostCommentedPostsView(APIView):
    """
    GET /api/posts/most-commented/

    Live posts tied for the most live comments.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        posts = get_most_commented_posts()
        return Response({
            'posts': MostCommentedPostSerializer(posts, many=True).data
        })


class CounterDriftView(APIView):
    """
    GET /api/counters/drift/

    Stored counters that disagree with the rows they count. Empty when
    everything is consistent.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        drift = find_counter_drift()
        return Response({
            'consistent': not drift,
            'drift': CounterDriftSerializer(drift, many=True).data
        })
