from rest_framework import serializers

from .models import School, SchoolClass, Teacher

MAX_EXPERIENCE_YEARS = 80


def display_name(user):
    profile = getattr(user, "profile", None)
    return profile.display_name if profile else user.email


class SchoolSerializer(serializers.ModelSerializer):
    class Meta:
        model = School
        fields = ["id", "name", "timezone", "settings", "created_at"]
        read_only_fields = ["id", "created_at"]


class TeacherSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    name = serializers.SerializerMethodField()
    phone = serializers.CharField(source="user.profile.phone", read_only=True)
    class_ids = serializers.SerializerMethodField()

    class Meta:
        model = Teacher
        fields = [
            "id", "user_id", "email", "name", "phone", "bio", "subject",
            "qualification", "experience_years", "address", "active",
            "class_ids", "created_at",
        ]

    def get_name(self, obj):
        return display_name(obj.user)

    def get_class_ids(self, obj):
        return [link.school_class_id for link in obj.class_links.all()]


class TeacherInputSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=128)
    password = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    bio = serializers.CharField(required=False, allow_blank=True, default="")
    subject = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    qualification = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    experience_years = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=MAX_EXPERIENCE_YEARS)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    class_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, default=list)
    send_credentials = serializers.BooleanField(required=False, default=False)


class TeacherUpdateSerializer(serializers.Serializer):
    teacher_id = serializers.IntegerField()
    name = serializers.CharField(max_length=128, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    bio = serializers.CharField(required=False, allow_blank=True)
    subject = serializers.CharField(max_length=128, required=False, allow_blank=True)
    qualification = serializers.CharField(max_length=200, required=False, allow_blank=True)
    experience_years = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=MAX_EXPERIENCE_YEARS)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    active = serializers.BooleanField(required=False)
    class_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)


class SchoolClassSerializer(serializers.ModelSerializer):
    teacher_ids = serializers.SerializerMethodField()
    students = serializers.SerializerMethodField()

    class Meta:
        model = SchoolClass
        fields = ["id", "name", "room", "schedule", "capacity", "teacher_ids", "students", "created_at"]

    def get_teacher_ids(self, obj):
        return [link.teacher_id for link in obj.teacher_links.all()]

    def get_students(self, obj):
        return [
            {"id": e.student_id, "user_id": e.student.user_id, "name": display_name(e.student.user)}
            for e in obj.enrollments.all()
        ]


class SchoolClassInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128)
    room = serializers.CharField(max_length=64, required=False, allow_blank=True)
    schedule = serializers.JSONField(required=False)
    capacity = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=10000)
    teacher_id = serializers.IntegerField(required=False, allow_null=True)
    student_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
