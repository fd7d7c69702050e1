from django.utils import timezone
from rest_framework import serializers

from schools.serializers import display_name
from .models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_DURATION,
    MAX_LOCATION_LENGTH,
    MAX_TITLE_LENGTH,
    PARTICIPANT_STATUS_CHOICES,
    TYPE_CHOICES,
    Event,
    EventParticipant,
)
from .recurrence import FREQUENCIES, MAX_OCCURRENCES

COLOR_REGEX = r"^#[0-9A-Fa-f]{6}$"


class ParticipantSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = EventParticipant
        fields = ["id", "user_id", "name", "status", "responded_at"]

    def get_name(self, obj):
        return display_name(obj.user)


class EventSerializer(serializers.ModelSerializer):
    class_id = serializers.IntegerField(source="school_class_id", read_only=True)
    created_by_name = serializers.SerializerMethodField()
    is_recurring = serializers.BooleanField(read_only=True)

    class Meta:
        model = Event
        fields = [
            "id", "title", "description", "event_type", "start_at", "end_at", "all_day",
            "location", "color", "class_id", "assignment_id", "homework_id", "target_id",
            "recurrence_rule", "recurrence_parent_id", "is_recurring",
            "created_by_id", "created_by_name", "created_at", "updated_at",
        ]

    def get_created_by_name(self, obj):
        return display_name(obj.created_by) if obj.created_by_id else None


class EventDetailSerializer(EventSerializer):
    participants = ParticipantSerializer(many=True, read_only=True)

    class Meta(EventSerializer.Meta):
        fields = EventSerializer.Meta.fields + ["participants"]


class RecurrenceRuleSerializer(serializers.Serializer):
    frequency = serializers.ChoiceField(choices=FREQUENCIES)
    interval = serializers.IntegerField(min_value=1, max_value=99, required=False, default=1)
    count = serializers.IntegerField(min_value=1, max_value=MAX_OCCURRENCES, required=False)
    until = serializers.DateTimeField(required=False)
    by_weekday = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6), required=False, allow_empty=False
    )
    by_month_day = serializers.ListField(
        child=serializers.IntegerField(min_value=1, max_value=31), required=False, allow_empty=False
    )
    by_month = serializers.ListField(
        child=serializers.IntegerField(min_value=1, max_value=12), required=False, allow_empty=False
    )

    def validate_until(self, value):
        if value <= timezone.now():
            raise serializers.ValidationError("until must be in the future")
        return value

    def validate(self, attrs):
        if "count" in attrs and "until" in attrs:
            raise serializers.ValidationError("Use either count or until, not both")
        if "count" not in attrs and "until" not in attrs:
            raise serializers.ValidationError("A recurring event needs count or until")
        return attrs


def check_times(start_at, end_at):
    if start_at > end_at:
        raise serializers.ValidationError("start_at must not be after end_at")
    if end_at - start_at > MAX_DURATION:
        raise serializers.ValidationError("An event cannot last longer than 30 days")


class EventCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH)
    description = serializers.CharField(
        max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    event_type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False, default="other")
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()
    all_day = serializers.BooleanField(required=False, default=False)
    location = serializers.CharField(max_length=MAX_LOCATION_LENGTH, required=False, allow_blank=True, default="")
    color = serializers.RegexField(COLOR_REGEX, required=False, error_messages={"invalid": "color must look like #RRGGBB"})
    class_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    assignment_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    homework_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    target_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    recurrence_rule = RecurrenceRuleSerializer(required=False, allow_null=True)
    participant_user_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), required=False, default=list, max_length=500
    )

    def validate(self, attrs):
        check_times(attrs["start_at"], attrs["end_at"])
        linked = [f for f in ("assignment_id", "homework_id", "target_id") if attrs.get(f)]
        if len(linked) > 1:
            raise serializers.ValidationError("Link at most one of assignment_id, homework_id or target_id")
        return attrs


class EventUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH, required=False)
    description = serializers.CharField(max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True)
    event_type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False)
    start_at = serializers.DateTimeField(required=False)
    end_at = serializers.DateTimeField(required=False)
    all_day = serializers.BooleanField(required=False)
    location = serializers.CharField(max_length=MAX_LOCATION_LENGTH, required=False, allow_blank=True)
    color = serializers.RegexField(COLOR_REGEX, required=False, error_messages={"invalid": "color must look like #RRGGBB"})
    update_series = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not any(k != "update_series" for k in attrs):
            raise serializers.ValidationError("No fields to update")
        return attrs


class RespondSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c in PARTICIPANT_STATUS_CHOICES if c[0] != "invited"])
