from django.contrib import admin

from .models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ("sender", "recipient", "message_type", "content", "read_at", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("id", "student", "landlord", "hostel", "last_message_at")
    search_fields = ("student__email", "landlord__email", "hostel__name")
    inlines = [MessageInline]
