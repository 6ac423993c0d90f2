from django.urls import path, re_path

from . import views

urlpatterns = [
    path("health", views.health_view, name="edge_health"),
    path("health/detailed", views.health_detailed_view, name="edge_health_detailed"),
    re_path(r"^api(?:/(?P<path>.*))?$", views.api_view, name="edge_api"),
    path("custom-sw.js", views.service_worker_view, name="service_worker"),

    # must stay last so it never shadows the routes above
    re_path(r"^(?P<path>.*)$", views.spa_fallback_view, name="spa_fallback"),
]

handler404 = "sspl.views.error_404_view"
handler500 = "sspl.views.error_500_view"
