from rest_framework import serializers

from schools.serializers import display_name
from .models import (
    MAX_DESCRIPTION_LENGTH,
    MAX_REASON_LENGTH,
    MAX_SUBMISSION_ATTACHMENTS,
    MAX_SUBMISSION_TEXT_LENGTH,
    MAX_TITLE_LENGTH,
    Assignment,
    AssignmentEvent,
    AssignmentSubmission,
)


class AssignmentSerializer(serializers.ModelSerializer):
    student_name = serializers.SerializerMethodField()
    is_late = serializers.BooleanField(read_only=True)
    highlight_ids = serializers.SerializerMethodField()

    class Meta:
        model = Assignment
        fields = [
            "id", "school_id", "student_id", "student_name", "created_by_id",
            "title", "description", "status", "due_at", "is_late",
            "reopen_count", "completed_at", "highlight_ids", "created_at", "updated_at",
        ]

    def get_student_name(self, obj):
        return display_name(obj.student.user)

    def get_highlight_ids(self, obj):
        return [link.highlight_id for link in obj.highlight_links.all()]


class AssignmentEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentEvent
        fields = ["id", "actor_id", "event_type", "from_status", "to_status", "meta", "created_at"]


class SubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentSubmission
        fields = ["id", "student_id", "text", "attachments", "submitted_at"]


class AssignmentDetailSerializer(AssignmentSerializer):
    events = AssignmentEventSerializer(many=True, read_only=True)
    submissions = SubmissionSerializer(many=True, read_only=True)

    class Meta(AssignmentSerializer.Meta):
        fields = AssignmentSerializer.Meta.fields + ["events", "submissions"]


class AssignmentCreateSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH)
    description = serializers.CharField(
        max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    due_at = serializers.DateTimeField()
    highlight_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class AssignmentUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH, required=False)
    description = serializers.CharField(max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True)
    due_at = serializers.DateTimeField(required=False)


class TransitionSerializer(serializers.Serializer):
    to_status = serializers.CharField(max_length=32)
    reason = serializers.CharField(max_length=MAX_REASON_LENGTH, required=False, allow_blank=True, allow_null=True)


class ReopenSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=MAX_REASON_LENGTH)


class SubmitSerializer(serializers.Serializer):
    text = serializers.CharField(
        max_length=MAX_SUBMISSION_TEXT_LENGTH, required=False, allow_blank=True, default=""
    )
    attachments = serializers.ListField(
        child=serializers.JSONField(),
        required=False,
        default=list,
        max_length=MAX_SUBMISSION_ATTACHMENTS,
    )
