from django.urls import path

from . import views

urlpatterns = [
    path("api/pace/", views.PaceAPIView.as_view(), name="api_pace"),
    path("api/match/", views.TrackMatchAPIView.as_view(), name="api_match"),
    path("api/spotify/", views.SpotifyProxyAPIView.as_view(), name="api_spotify"),
    path("api/spotify/auth/", views.SpotifyAuthAPIView.as_view(), name="api_spotify_auth"),
    path("api/spotify/search/", views.TrackSearchAPIView.as_view(), name="api_spotify_search"),
    path("api/playlist/optimize/", views.PlaylistOptimizeAPIView.as_view(), name="api_playlist_optimize"),
    path("api/playlist/generate/", views.PlaylistGenerateAPIView.as_view(), name="api_playlist_generate"),
    path("api/session/simulate/", views.SessionSimulateAPIView.as_view(), name="api_session_simulate"),
]
