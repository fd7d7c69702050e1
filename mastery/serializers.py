from rest_framework import serializers

from quran.models import SURAH_COUNT
from .models import LEVEL_CHOICES, AyahMastery

# Longest surah (Al-Baqarah).
MAX_AYAH = 286


class MasterySerializer(serializers.ModelSerializer):
    reference = serializers.CharField(read_only=True)

    class Meta:
        model = AyahMastery
        fields = ["id", "student_id", "surah", "ayah", "reference", "level", "updated_by_id", "last_updated"]


class UpsertSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    surah = serializers.IntegerField(min_value=1, max_value=SURAH_COUNT)
    ayah = serializers.IntegerField(min_value=1, max_value=MAX_AYAH)
    level = serializers.ChoiceField(choices=LEVEL_CHOICES)


class AutoUpdateSerializer(serializers.Serializer):
    student_id = serializers.IntegerField(min_value=1)
    assignment_id = serializers.IntegerField(min_value=1)
    new_level = serializers.ChoiceField(choices=LEVEL_CHOICES, required=False, allow_null=True)
