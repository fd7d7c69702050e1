from rest_framework import serializers

from schools.serializers import display_name
from .models import (
    CATEGORY_CHOICES,
    MAX_DESCRIPTION_LENGTH,
    MAX_MILESTONE_DESCRIPTION_LENGTH,
    MAX_MILESTONES,
    MAX_TITLE_LENGTH,
    STATUS_CHOICES,
    TYPE_CHOICES,
    Milestone,
    Target,
)


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = [
            "id", "title", "description", "target_value", "current_value",
            "completed", "completed_at", "completed_by_id", "order", "created_at",
        ]


class TargetSerializer(serializers.ModelSerializer):
    student_name = serializers.SerializerMethodField()
    class_id = serializers.IntegerField(source="school_class_id", read_only=True)
    class_name = serializers.SerializerMethodField()
    created_by_name = serializers.SerializerMethodField()
    progress = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    days_remaining = serializers.IntegerField(read_only=True)
    milestones = MilestoneSerializer(many=True, read_only=True)

    class Meta:
        model = Target
        fields = [
            "id", "type", "status", "category", "title", "description",
            "student_id", "student_name", "class_id", "class_name", "created_by_id", "created_by_name",
            "start_date", "due_date", "completed_at", "progress", "is_overdue", "days_remaining",
            "milestones", "created_at", "updated_at",
        ]

    def get_student_name(self, obj):
        return display_name(obj.student.user) if obj.student_id else None

    def get_class_name(self, obj):
        return obj.school_class.name if obj.school_class_id else None

    def get_created_by_name(self, obj):
        return display_name(obj.created_by) if obj.created_by_id else None


class MilestoneInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH)
    description = serializers.CharField(
        max_length=MAX_MILESTONE_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    target_value = serializers.IntegerField(min_value=0, max_value=1000000, required=False, allow_null=True)


class TargetCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TYPE_CHOICES)
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, required=False, default="other")
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH)
    description = serializers.CharField(
        max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    student_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    class_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    milestones = MilestoneInputSerializer(many=True, required=False, default=list)

    def validate_milestones(self, value):
        if len(value) > MAX_MILESTONES:
            raise serializers.ValidationError(f"A target can have at most {MAX_MILESTONES} milestones")
        return value

    def validate(self, attrs):
        kind = attrs["type"]
        if kind == "individual" and not attrs.get("student_id"):
            raise serializers.ValidationError("student_id is required for individual targets")
        if kind == "class" and not attrs.get("class_id"):
            raise serializers.ValidationError("class_id is required for class targets")
        if kind == "school" and (attrs.get("student_id") or attrs.get("class_id")):
            raise serializers.ValidationError("School targets cannot name a student or class")
        start, due = attrs.get("start_date"), attrs.get("due_date")
        if start and due and start >= due:
            raise serializers.ValidationError("start_date must be before due_date")
        return attrs


class TargetUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH, required=False)
    description = serializers.CharField(max_length=MAX_DESCRIPTION_LENGTH, required=False, allow_blank=True)
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, required=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    start_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No fields to update")
        return attrs


class MilestoneUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=MAX_TITLE_LENGTH, required=False)
    description = serializers.CharField(max_length=MAX_MILESTONE_DESCRIPTION_LENGTH, required=False, allow_blank=True)
    target_value = serializers.IntegerField(min_value=0, max_value=1000000, required=False, allow_null=True)
    current_value = serializers.IntegerField(min_value=0, max_value=1000000, required=False, allow_null=True)
    completed = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No fields to update")
        return attrs
