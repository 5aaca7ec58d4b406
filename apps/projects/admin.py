from django.contrib import admin
from .models import Project, Stage


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'contractor', 'city', 'created_at')
    search_fields = ('name', 'owner__username', 'city')


@admin.register(Stage)
class StageAdmin(admin.ModelAdmin):
    list_display = ('project', 'name', 'order')
    search_fields = ('project__name', 'name')
