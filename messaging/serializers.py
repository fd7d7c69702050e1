from rest_framework import serializers

from schools.serializers import display_name
from .models import MAX_ATTACHMENTS, MAX_BODY_LENGTH, MAX_SUBJECT_LENGTH, Message, MessageAttachment


class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageAttachment
        fields = ["id", "file_name", "file_path", "mime_type", "size"]


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()
    recipient_name = serializers.SerializerMethodField()
    thread_id = serializers.IntegerField(source="root_id", read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "id", "thread_id", "sender_id", "sender_name", "recipient_id",
            "recipient_name", "subject", "body", "read_at", "attachments",
            "created_at",
        ]

    def get_sender_name(self, obj):
        return display_name(obj.sender)

    def get_recipient_name(self, obj):
        return display_name(obj.recipient)


class SendSerializer(serializers.Serializer):
    recipient_id = serializers.IntegerField(required=False, allow_null=True)
    thread_id = serializers.IntegerField(required=False, allow_null=True)
    subject = serializers.CharField(max_length=MAX_SUBJECT_LENGTH, required=False, allow_blank=True, default="")
    body = serializers.CharField(max_length=MAX_BODY_LENGTH)
    attachments = serializers.ListField(
        child=serializers.DictField(), required=False, default=list, max_length=MAX_ATTACHMENTS
    )

    def validate(self, attrs):
        if not attrs.get("recipient_id") and not attrs.get("thread_id"):
            raise serializers.ValidationError("recipient_id or thread_id is required")
        return attrs


class GroupSendSerializer(serializers.Serializer):
    recipient_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    class_id = serializers.IntegerField(required=False, allow_null=True)
    subject = serializers.CharField(max_length=MAX_SUBJECT_LENGTH, required=False, allow_blank=True, default="")
    body = serializers.CharField(max_length=MAX_BODY_LENGTH)

    def validate(self, attrs):
        if not attrs["recipient_ids"] and not attrs.get("class_id"):
            raise serializers.ValidationError("recipient_ids or class_id is required")
        return attrs
