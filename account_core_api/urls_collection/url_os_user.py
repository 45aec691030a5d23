# account_core_api/urls_collection/url_os_user.py
from django.urls import path, include
from rest_framework.routers import SimpleRouter
from account_core_api.views_collection.view_os_user import OSUserViewSet, OSIdentityView

router = SimpleRouter()
router.register(r"users", OSUserViewSet, basename="osuser")

urlpatterns = [
    path("identity/", OSIdentityView.as_view(), name="os-identity"),
    path("", include(router.urls)),
]
