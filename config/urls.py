from django.conf import settings
from django.contrib import admin
from django.contrib.staticfiles.urls import staticfiles_urlpatterns
from django.urls import include
from django.urls import path
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from drf_spectacular.views import SpectacularAPIView
from drf_spectacular.views import SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.views import TokenVerifyView

from .health import health as health_view


def tagged_token_view(view_class):
    """JWT views grouped under one OpenAPI tag."""
    return extend_schema_view(post=extend_schema(tags=["Authentication"]))(
        type(view_class.__name__, (view_class,), {})
    ).as_view()


urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path("health/", health_view, name="health"),
    # Check-in API, scoped by event
    path("api/v1/", include(("config.api_router", "api"), namespace="api_v1")),
    path(
        "api/v1/auth/jwt/create/",
        tagged_token_view(TokenObtainPairView),
        name="jwt-create",
    ),
    path(
        "api/v1/auth/jwt/refresh/",
        tagged_token_view(TokenRefreshView),
        name="jwt-refresh",
    ),
    path(
        "api/v1/auth/jwt/verify/",
        tagged_token_view(TokenVerifyView),
        name="jwt-verify",
    ),
    path("api/v1/schema/", SpectacularAPIView.as_view(), name="api-schema-v1"),
    path(
        "api/v1/docs/",
        SpectacularSwaggerView.as_view(url_name="api-schema-v1"),
        name="api-docs-v1",
    ),
]
if settings.DEBUG:
    urlpatterns += staticfiles_urlpatterns()
