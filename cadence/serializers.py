from rest_framework import serializers

from .exceptions import InvalidInput
from .matcher_engine import ENERGY_LEVELS, GENRES
from .models import Track
from .pace import MAX_BPM, MIN_BPM, parse_pace
from .spotify_utils import ACTIONS


class TrackSerializer(serializers.Serializer):
    id = serializers.CharField()
    title = serializers.CharField(required=False, allow_blank=True, default="")
    artist = serializers.CharField(required=False, allow_blank=True, default="")
    album = serializers.CharField(required=False, allow_blank=True, default="")
    tempo = serializers.FloatField(required=False, allow_null=True, default=None, min_value=0.0)
    duration = serializers.FloatField(required=False, default=0.0, min_value=0.0)
    cover_url = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    uri = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)


def _tracks_from(validated) -> list:
    return [Track(**row) for row in validated]


class PaceRequestSerializer(serializers.Serializer):
    pace = serializers.CharField(required=False, allow_blank=True)
    bpm = serializers.IntegerField(required=False, min_value=MIN_BPM, max_value=MAX_BPM)

    def validate_pace(self, value):
        if not value.strip():
            # blank means "not sent"; validate() decides between pace and bpm
            return ""
        try:
            parse_pace(value)
        except InvalidInput as exc:
            raise serializers.ValidationError(str(exc))
        return value.strip()

    def validate(self, attrs):
        has_pace = bool(attrs.get("pace"))
        has_bpm = attrs.get("bpm") is not None
        if has_pace == has_bpm:
            raise serializers.ValidationError("Send exactly one of 'pace' (m:ss) or 'bpm'.")
        return attrs


class MatchRequestSerializer(serializers.Serializer):
    target_bpm = serializers.FloatField(min_value=0.0)
    tracks = TrackSerializer(many=True)
    dedupe = serializers.BooleanField(required=False, default=True)

    def validate(self, attrs):
        attrs["tracks"] = _tracks_from(attrs["tracks"])
        return attrs


class SpotifyAuthRequestSerializer(serializers.Serializer):
    # Presence is checked by the token exchange so the error shape matches it
    code = serializers.CharField(required=False, allow_blank=True, default="")
    redirect_uri = serializers.CharField(required=False, allow_blank=True, default="")


class SpotifyProxyRequestSerializer(serializers.Serializer):
    access_token = serializers.CharField()
    action = serializers.ChoiceField(choices=sorted(ACTIONS))
    data = serializers.DictField(required=False, default=dict)


class SearchRequestSerializer(serializers.Serializer):
    access_token = serializers.CharField()
    query = serializers.CharField()
    target_bpm = serializers.FloatField(required=False, allow_null=True, default=None, min_value=0.0)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50)


class OptimizeRequestSerializer(serializers.Serializer):
    access_token = serializers.CharField()
    target_bpm = serializers.FloatField(min_value=0.0)
    tracks = TrackSerializer(many=True)

    def validate(self, attrs):
        attrs["tracks"] = _tracks_from(attrs["tracks"])
        return attrs


class SimulateRequestSerializer(serializers.Serializer):
    target_bpm = serializers.IntegerField(min_value=MIN_BPM, max_value=MAX_BPM)
    ticks = serializers.IntegerField(min_value=0)
    pause_after = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=0)
    paused_ticks = serializers.IntegerField(required=False, default=0, min_value=0)
    seed = serializers.IntegerField(required=False, allow_null=True, default=None)
    tracks = TrackSerializer(many=True, required=False, default=list)

    def validate_ticks(self, value):
        cap = self.context.get("max_ticks")
        if cap is not None and value > cap:
            raise serializers.ValidationError(f"ticks must be <= {cap}")
        return value

    def validate(self, attrs):
        attrs["tracks"] = _tracks_from(attrs.get("tracks") or [])
        return attrs


class GenerateRequestSerializer(serializers.Serializer):
    access_token = serializers.CharField()
    target_bpm = serializers.FloatField(min_value=0.0)
    genres = serializers.ListField(
        child=serializers.ChoiceField(choices=GENRES), required=False, default=lambda: ["pop"], min_length=1
    )
    energy = serializers.ChoiceField(choices=sorted(ENERGY_LEVELS), required=False, default="medium")
    size = serializers.IntegerField(required=False, min_value=1, max_value=50)
