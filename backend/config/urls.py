"""
URL configuration for the warehouse backend.

Every app URLconf is mounted under ``api/``. The clearance routes come before
the catalog routes because ``items/<product_code>/`` would otherwise capture
``items/clearance/``.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Warehouse Inventory Admin Panel"
admin.site.site_title = "Warehouse Inventory Admin Portal"
admin.site.index_title = "Welcome to the Warehouse Inventory Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('backend.core.urls')),
    path('api/', include('backend.locations.urls')),
    path('api/', include('backend.clearance.urls')),
    path('api/', include('backend.catalog.urls')),
    path('api/', include('backend.inventory.urls')),
    path('api/', include('backend.borrowing.urls')),
    path('api/', include('backend.integrations.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
