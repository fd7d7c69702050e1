from rest_framework import serializers

from quran.models import SURAH_COUNT
from schools.serializers import display_name
from students.models import MUSHAF_PAGES
from .models import COLOR_HEX, NOTE_TEXT, NOTE_TYPE_CHOICES, TYPE_CHOICES, Highlight, Note


class NoteSerializer(serializers.ModelSerializer):
    author_name = serializers.SerializerMethodField()
    author_role = serializers.SerializerMethodField()

    class Meta:
        model = Note
        fields = [
            "id", "highlight_id", "author_id", "author_name", "author_role",
            "parent_note_id", "type", "text", "audio_url", "visible_to_parent",
            "seen_at", "seen_by_id", "created_at",
        ]

    def get_author_name(self, obj):
        return display_name(obj.author)

    def get_author_role(self, obj):
        profile = getattr(obj.author, "profile", None)
        return profile.role if profile else None


class NoteThreadSerializer(NoteSerializer):
    replies = serializers.SerializerMethodField()

    class Meta(NoteSerializer.Meta):
        fields = NoteSerializer.Meta.fields + ["replies"]

    def get_replies(self, obj):
        children = self.context.get("children", {}).get(obj.id, [])
        return NoteThreadSerializer(children, many=True, context=self.context).data


class HighlightSerializer(serializers.ModelSerializer):
    color_hex = serializers.SerializerMethodField()

    class Meta:
        model = Highlight
        fields = [
            "id", "school_id", "student_id", "teacher_id", "created_by_id",
            "type", "color", "color_hex", "previous_color", "surah",
            "ayah_start", "ayah_end", "word_start", "word_end", "page_number",
            "note", "completed_at", "completed_by_id", "created_at",
        ]

    def get_color_hex(self, obj):
        return COLOR_HEX.get(obj.color)


class HighlightWithNotesSerializer(HighlightSerializer):
    notes = serializers.SerializerMethodField()

    class Meta(HighlightSerializer.Meta):
        fields = HighlightSerializer.Meta.fields + ["notes"]

    def get_notes(self, obj):
        notes = obj.notes.all()
        if self.context.get("parent_view"):
            notes = [n for n in notes if n.visible_to_parent]
        return NoteSerializer(notes, many=True).data


class AyahRangeSerializer(serializers.Serializer):
    surah = serializers.IntegerField(min_value=1, max_value=SURAH_COUNT)
    ayah_start = serializers.IntegerField(min_value=1)
    ayah_end = serializers.IntegerField(min_value=1)
    word_start = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    word_end = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    page_number = serializers.IntegerField(min_value=1, max_value=MUSHAF_PAGES, required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["ayah_end"] < attrs["ayah_start"]:
            raise serializers.ValidationError("ayah_end must not be before ayah_start")
        return attrs


class HighlightCreateSerializer(AyahRangeSerializer):
    student_id = serializers.IntegerField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False, allow_blank=True)
    color = serializers.CharField(max_length=16, required=False, allow_blank=True)


class HomeworkCreateSerializer(AyahRangeSerializer):
    student_id = serializers.IntegerField()


class NoteCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=NOTE_TYPE_CHOICES, required=False, default=NOTE_TEXT)
    text = serializers.CharField(required=False, allow_blank=True, default="")
    audio_url = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    parent_note_id = serializers.IntegerField(required=False, allow_null=True)
    visible_to_parent = serializers.BooleanField(required=False, default=True)
