"""
Blog App URL Configuration
"""
from django.urls import path
from .views import (
    UserCreateView,
    UserDetailView,
    PostCreateView,
    PostDetailView,
    CommentCreateView,
    CommentDetailView,
    MostCommentedPostsView,
    CounterDriftView,
)

urlpatterns = [
    # Users
    path('users/', UserCreateView.as_view(), name='user-create'),
    path('users/<int:user_id>/', UserDetailView.as_view(), name='user-detail'),

    # Posts
    path('posts/', PostCreateView.as_view(), name='post-create'),
    path('posts/most-commented/', MostCommentedPostsView.as_view(), name='post-most-commented'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/comments/', CommentCreateView.as_view(), name='comment-create'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),

    # Consistency audit
    path('counters/drift/', CounterDriftView.as_view(), name='counter-drift'),
]
