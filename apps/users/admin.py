from django.contrib import admin
from .models import User, ContractorProfile, WorkloadEntry

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'phone_number', 'role', 'is_superuser')
    list_filter = ('role', 'is_superuser')
    search_fields = ('username', 'email', 'phone_number')

@admin.register(ContractorProfile)
class ContractorProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'company', 'active_projects', 'completed_projects', 'total_earnings')
    search_fields = ('user__username', 'company')
    readonly_fields = ('active_projects', 'completed_projects', 'total_earnings')

@admin.register(WorkloadEntry)
class WorkloadEntryAdmin(admin.ModelAdmin):
    list_display = ('contractor', 'job_id', 'kind', 'amount', 'created_at')
    list_filter = ('kind',)
    search_fields = ('contractor__username',)
