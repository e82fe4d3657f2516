from django.urls import path

from modules.core.views import AdminSessionView, health_check

urlpatterns = [
    path("health", health_check, name="health_check"),
    path("api/v1/admin/me", AdminSessionView.as_view(), name="admin_me"),
]
