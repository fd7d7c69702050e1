from rest_framework import serializers

from .models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source="user.id", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    school_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Profile
        fields = ["user_id", "email", "display_name", "role", "school_id", "phone"]


class SignInSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)


class RegisterSchoolSerializer(serializers.Serializer):
    school_name = serializers.CharField(max_length=200)
    admin_email = serializers.EmailField()
    admin_password = serializers.CharField(min_length=8, trim_whitespace=False)
    admin_name = serializers.CharField(max_length=128)
    timezone = serializers.CharField(max_length=64, required=False, default="UTC")
