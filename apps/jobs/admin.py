from django.contrib import admin
from django.db.models import F
from django.utils import timezone
from .models import Job, Bid

# Lifecycle and money fields only ever change through JobRepository.save.
JOB_LIFECYCLE_FIELDS = (
    'status', 'posted_by', 'project', 'accepted_bid', 'assigned_contractor', 'assigned_at', 'completed_at',
    'cancellation_reason', 'version', 'view_count', 'bid_count',
)
BID_LIFECYCLE_FIELDS = (
    'job', 'contractor', 'amount', 'status', 'submitted_at', 'responded_at', 'response_note',
)


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    fields = ('contractor', 'amount', 'status', 'submitted_at', 'responded_at')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('title', 'project', 'posted_by', 'status', 'assigned_contractor', 'bid_count', 'created_at')
    list_filter = ('status', 'work_type', 'city')
    search_fields = ('title', 'posted_by__username', 'project__name')
    readonly_fields = JOB_LIFECYCLE_FIELDS
    inlines = [BidInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        # jobs are cancelled, never removed
        return False

    def save_model(self, request, obj, form, change):
        """Write only the edited descriptive fields and bump the version."""
        changed = {name: getattr(obj, name) for name in form.changed_data if name not in JOB_LIFECYCLE_FIELDS}
        if changed:
            Job.objects.filter(pk=obj.pk).update(version=F('version') + 1, updated_at=timezone.now(), **changed)


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('job', 'contractor', 'amount', 'status', 'submitted_at')
    list_filter = ('status',)
    search_fields = ('job__title', 'contractor__username')
    readonly_fields = BID_LIFECYCLE_FIELDS

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        changed = {name: getattr(obj, name) for name in form.changed_data if name not in BID_LIFECYCLE_FIELDS}
        if changed:
            Bid.objects.filter(pk=obj.pk).update(**changed)
