from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

# ADMIN_URL must not start with a slash and must end with one
admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    # APIs
    path('api/v1/accounts/', include('apps.accounts.urls')),
    path('api/v1/', include('apps.work_orders.urls')),
    path('api/v1/utils/', include('apps.utils.urls')),

    # API docs
    path('api/v1/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/v1/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='api-docs'),
]
