from decimal import Decimal

from rest_framework import serializers

from schools.serializers import display_name
from .models import (
    MAX_COMMENTS_LENGTH,
    MAX_CRITERIA,
    MAX_CRITERION_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_RUBRIC_DESCRIPTION_LENGTH,
    Grade,
    Rubric,
    RubricCriterion,
)


class CriterionSerializer(serializers.ModelSerializer):
    weight = serializers.FloatField()
    max_score = serializers.FloatField()

    class Meta:
        model = RubricCriterion
        fields = ["id", "name", "description", "weight", "max_score", "order"]


class RubricSerializer(serializers.ModelSerializer):
    criteria = CriterionSerializer(many=True, read_only=True)
    total_weight = serializers.FloatField(read_only=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = Rubric
        fields = [
            "id", "name", "description", "criteria", "total_weight",
            "created_by_id", "created_by_name", "created_at", "updated_at",
        ]

    def get_created_by_name(self, obj):
        return display_name(obj.created_by) if obj.created_by_id else None


class GradeSerializer(serializers.ModelSerializer):
    score = serializers.FloatField()
    max_score = serializers.FloatField()
    criterion_name = serializers.CharField(source="criterion.name", read_only=True)

    class Meta:
        model = Grade
        fields = [
            "id", "assignment_id", "student_id", "criterion_id", "criterion_name",
            "score", "max_score", "comments", "graded_by_id", "graded_at",
        ]


class CriterionInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=MAX_NAME_LENGTH)
    description = serializers.CharField(
        max_length=MAX_CRITERION_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    weight = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal(0), max_value=Decimal(100))
    max_score = serializers.DecimalField(max_digits=7, decimal_places=2, min_value=Decimal("0.01"))


class CriterionUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=MAX_NAME_LENGTH, required=False)
    description = serializers.CharField(
        max_length=MAX_CRITERION_DESCRIPTION_LENGTH, required=False, allow_blank=True
    )
    weight = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal(0), max_value=Decimal(100), required=False
    )
    max_score = serializers.DecimalField(max_digits=7, decimal_places=2, min_value=Decimal("0.01"), required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No fields to update")
        return attrs


class RubricCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=MAX_NAME_LENGTH)
    description = serializers.CharField(
        max_length=MAX_RUBRIC_DESCRIPTION_LENGTH, required=False, allow_blank=True, default=""
    )
    criteria = CriterionInputSerializer(many=True, required=False, default=list)

    def validate_criteria(self, value):
        if len(value) > MAX_CRITERIA:
            raise serializers.ValidationError(f"A rubric can have at most {MAX_CRITERIA} criteria")
        return value


class RubricUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=MAX_NAME_LENGTH, required=False)
    description = serializers.CharField(max_length=MAX_RUBRIC_DESCRIPTION_LENGTH, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No fields to update")
        return attrs


class AttachRubricSerializer(serializers.Serializer):
    rubric_id = serializers.IntegerField(min_value=1)


class GradeInputSerializer(serializers.Serializer):
    assignment_id = serializers.IntegerField(min_value=1)
    student_id = serializers.IntegerField(min_value=1)
    criterion_id = serializers.IntegerField(min_value=1)
    score = serializers.DecimalField(max_digits=7, decimal_places=2)
    max_score = serializers.DecimalField(
        max_digits=7, decimal_places=2, min_value=Decimal("0.01"), required=False, allow_null=True
    )
    comments = serializers.CharField(max_length=MAX_COMMENTS_LENGTH, required=False, allow_blank=True, default="")
