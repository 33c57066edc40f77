from django.urls import include, path

urlpatterns = [
    path("", include("cadence.urls")),
]
