from django.contrib import admin
from .models import ProgressUpdate, ProgressComment


class ProgressCommentInline(admin.TabularInline):
    model = ProgressComment
    extra = 0


@admin.register(ProgressUpdate)
class ProgressUpdateAdmin(admin.ModelAdmin):
    list_display = ('project', 'contractor', 'type', 'progress_percentage', 'customer_acknowledged', 'created_at')
    list_filter = ('type', 'customer_acknowledged', 'customer_visible')
    search_fields = ('project__name', 'contractor__username', 'title')
    inlines = [ProgressCommentInline]
