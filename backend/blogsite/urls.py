"""
Blogsite URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Blog API Server',
        'version': '1.0',
        'endpoints': {
            'users': '/api/users/',
            'posts': '/api/posts/<id>/',
            'comments': '/api/posts/<id>/comments/',
            'most_commented': '/api/posts/most-commented/',
            'counter_drift': '/api/counters/drift/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('blog.urls')),
]
