from rest_framework import serializers

from .models import STATUS_CHOICES, AttendanceRecord


class AttendanceRecordSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source="student.user.profile.display_name", read_only=True)

    class Meta:
        model = AttendanceRecord
        fields = [
            "id", "school_class_id", "student_id", "student_name", "session_date",
            "status", "notes", "marked_by_id", "created_at", "updated_at",
        ]


class AttendanceEntrySerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=STATUS_CHOICES)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SessionSerializer(serializers.Serializer):
    class_id = serializers.IntegerField()
    session_date = serializers.DateField()
    attendance = AttendanceEntrySerializer(many=True, allow_empty=False)

    def validate_attendance(self, value):
        ids = [entry["student_id"] for entry in value]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("Each student may appear once per session")
        return value


class AttendanceUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True)
