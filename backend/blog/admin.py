"""
Django Admin Configuration for Blog Models

Counters are read-only here, and rows are removed through the services
(soft removal), never deleted from the admin.
"""
from django.contrib import admin
from .models import User, Post, Comment


class SoftDeleteAdmin(admin.ModelAdmin):

    def get_queryset(self, request):
        # Show removed rows too
        return self.model.all_objects.all()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(SoftDeleteAdmin):
    list_display = ['username', 'email', 'post_count', 'created_at', 'deleted_at']
    search_fields = ['username', 'email']
    readonly_fields = ['post_count', 'created_at', 'updated_at', 'deleted_at']
    exclude = ['password']


@admin.register(Post)
class PostAdmin(SoftDeleteAdmin):
    list_display = ['title', 'author', 'comment_count', 'comment_status', 'created_at', 'deleted_at']
    list_filter = ['comment_status', 'created_at']
    search_fields = ['title', 'content', 'author__username']
    readonly_fields = ['comment_count', 'comment_status', 'created_at', 'updated_at', 'deleted_at']


@admin.register(Comment)
class CommentAdmin(SoftDeleteAdmin):
    list_display = ['id', 'post', 'author', 'created_at', 'deleted_at']
    list_filter = ['created_at']
    search_fields = ['content', 'author__username']
    readonly_fields = ['created_at', 'updated_at', 'deleted_at']
