from rest_framework import serializers

from schools.serializers import display_name
from .models import GENDER_CHOICES, MUSHAF_PAGES, Parent, Student


class StudentSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    name = serializers.SerializerMethodField()
    age = serializers.IntegerField(read_only=True)

    class Meta:
        model = Student
        fields = [
            "id", "user_id", "email", "name", "dob", "age", "gender",
            "grade", "active", "last_page", "created_at",
        ]

    def get_name(self, obj):
        return display_name(obj.user)


class ParentSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    name = serializers.SerializerMethodField()
    phone = serializers.CharField(source="user.profile.phone", read_only=True)
    student_ids = serializers.SerializerMethodField()

    class Meta:
        model = Parent
        fields = ["id", "user_id", "email", "name", "phone", "address", "student_ids", "created_at"]

    def get_name(self, obj):
        return display_name(obj.user)

    def get_student_ids(self, obj):
        return [link.student_id for link in obj.links.all()]


class StudentInputSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=128)
    password = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    dob = serializers.DateField(required=False, allow_null=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=120)
    gender = serializers.ChoiceField(choices=GENDER_CHOICES, required=False, allow_blank=True)
    grade = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    class_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, default=list)
    send_credentials = serializers.BooleanField(required=False, default=False)


class StudentUpdateSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    name = serializers.CharField(max_length=128, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    dob = serializers.DateField(required=False, allow_null=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=120)
    gender = serializers.ChoiceField(choices=GENDER_CHOICES, required=False, allow_blank=True)
    grade = serializers.CharField(max_length=32, required=False, allow_blank=True)
    active = serializers.BooleanField(required=False)


class ParentInputSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=128)
    password = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    student_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, default=list)
    send_credentials = serializers.BooleanField(required=False, default=False)


class ParentUpdateSerializer(serializers.Serializer):
    parent_id = serializers.IntegerField()
    name = serializers.CharField(max_length=128, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)


class LastPageSerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, max_value=MUSHAF_PAGES)
