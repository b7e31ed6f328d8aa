from django.contrib import admin

from .models import Review, ReviewHelpfulness


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("hostel", "student", "rating", "is_verified", "helpful_count", "created_at")
    list_filter = ("is_verified", "rating")
    search_fields = ("hostel__name", "student__email", "title")


admin.site.register(ReviewHelpfulness)
