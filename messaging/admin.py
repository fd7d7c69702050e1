from django.contrib import admin

from .models import Message, MessageAttachment


class MessageAttachmentInline(admin.TabularInline):
    model = MessageAttachment
    extra = 0


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "school", "sender", "recipient", "subject", "read_at", "created_at")
    list_filter = ("school",)
    search_fields = ("subject", "sender__email", "recipient__email")
    inlines = [MessageAttachmentInline]
