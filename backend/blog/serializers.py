"""
DRF Serializers
===============

Serializers handle:
1. Validation of incoming data
2. Transformation of model instances to JSON

Counter fields (post_count, comment_count, comment_status) are read-only
everywhere: only the counter hooks and the post cascade write them.
"""

from rest_framework import serializers

from .models import Comment, Post, User


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'password', 'post_count', 'created_at']
        read_only_fields = ['id', 'post_count', 'created_at']

    def validate_username(self, value):
        if not value.strip():
            raise serializers.ValidationError("Username cannot be empty.")
        return value.strip()


class CommentSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'post', 'content', 'author', 'created_at']
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    """
    Input for creating a comment.

    The post id comes from the URL, not from the body.
    """
    author_id = serializers.IntegerField(min_value=1)
    content = serializers.CharField()

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value.strip()


class PostSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Post
        fields = [
            'id',
            'title',
            'content',
            'author',
            'comment_count',
            'comment_status',
            'created_at',
        ]
        read_only_fields = fields


class PostCreateSerializer(serializers.Serializer):
    author_id = serializers.IntegerField(min_value=1)
    title = serializers.CharField(max_length=300)
    content = serializers.CharField()

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Title cannot be empty.")
        return value.strip()


class PostDetailSerializer(PostSerializer):
    """
    Post with its live comments.

    Comments are passed in context (already fetched by the view) to avoid a
    query per serialized post.
    """
    comments = serializers.SerializerMethodField()

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ['comments']
        read_only_fields = fields

    def get_comments(self, obj):
        comments = self.context.get('comments')
        if comments is None:
            comments = getattr(obj, 'live_comments', [])
        return CommentSerializer(comments, many=True).data


class UserDetailSerializer(serializers.ModelSerializer):
    """User with posts; each post carries its prefetched live comments."""
    posts = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'post_count', 'created_at', 'posts']
        read_only_fields = fields

    def get_posts(self, obj):
        posts = self.context.get('posts', [])
        return PostDetailSerializer(posts, many=True).data


class MostCommentedPostSerializer(PostSerializer):
    live_comment_count = serializers.IntegerField(read_only=True)

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ['live_comment_count']
        read_only_fields = fields


class CounterDriftSerializer(serializers.Serializer):
    model = serializers.CharField()
    id = serializers.IntegerField()
    field = serializers.CharField()
    stored = serializers.JSONField()
    expected = serializers.JSONField()


class RemovalResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    action = serializers.CharField()
    comments_removed = serializers.IntegerField()
