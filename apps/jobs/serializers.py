from rest_framework import serializers
from apps.users.serializers import UserSummarySerializer
from core.constants import JOB_STATUS_CHOICES
from .models import Job, Bid
from .postings import EDITABLE_FIELDS


class BidSerializer(serializers.ModelSerializer):
    contractor = UserSummarySerializer(read_only=True)

    class Meta:
        model = Bid
        fields = [
            'id', 'job', 'contractor', 'amount', 'proposal', 'estimated_duration',
            'status', 'submitted_at', 'responded_at', 'response_note',
        ]
        read_only_fields = fields


class BidSubmitSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    proposal = serializers.CharField(max_length=2000)
    estimated_duration = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class BidEditSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    proposal = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    estimated_duration = serializers.CharField(max_length=100, required=False, allow_blank=True)


class ResponseNoteSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class CancelJobSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class JobSerializer(serializers.ModelSerializer):
    posted_by = UserSummarySerializer(read_only=True)
    assigned_contractor = UserSummarySerializer(read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)
    budget_display = serializers.CharField(read_only=True)
    specializations = serializers.ListField(source='specialization_list', read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'project', 'project_name', 'posted_by', 'title', 'description',
            'budget_min', 'budget_max', 'budget_currency', 'budget_type', 'budget_display',
            'specializations', 'address', 'city', 'state', 'pincode',
            'start_date', 'end_date', 'duration', 'flexibility', 'work_type', 'requirements',
            'status', 'accepted_bid', 'assigned_contractor', 'assigned_at', 'completed_at',
            'cancellation_reason', 'view_count', 'bid_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class JobWithBidsSerializer(JobSerializer):
    bids = serializers.SerializerMethodField()
    bids_summary = serializers.SerializerMethodField()

    class Meta(JobSerializer.Meta):
        fields = JobSerializer.Meta.fields + ['bids', 'bids_summary']
        read_only_fields = fields

    def get_bids(self, obj):
        # Contractors only ever see their own bid
        visible_to = self.context.get('bids_visible_to')
        bids = obj.bid_list
        if visible_to is not None:
            bids = [b for b in bids if b.contractor_id == visible_to.pk]
        return BidSerializer(bids, many=True).data

    def get_bids_summary(self, obj):
        return obj.bid_summary()


class JobWriteSerializer(serializers.ModelSerializer):
    project_id = serializers.IntegerField(required=False)
    publish = serializers.BooleanField(required=False, default=True)
    status = serializers.ChoiceField(choices=JOB_STATUS_CHOICES, required=False)

    class Meta:
        model = Job
        fields = list(EDITABLE_FIELDS) + ['project_id', 'publish', 'status']
        extra_kwargs = {
            'title': {'required': False},
        }

    def validate(self, data):
        if not self.partial and 'project_id' not in data:
            raise serializers.ValidationError({"project_id": "This field is required."})
        if not self.partial and not (data.get('title') or '').strip():
            raise serializers.ValidationError({"title": "Job title is required."})
        return data


class MyBidSerializer(serializers.Serializer):
    job = serializers.SerializerMethodField()
    bid = serializers.SerializerMethodField()

    def get_job(self, obj):
        job = obj['job']
        return {
            'id': job.pk,
            'title': job.title,
            'description': job.description,
            'budget_display': job.budget_display,
            'status': job.status,
            'work_type': job.work_type,
            'city': job.city,
            'project': job.project_id,
            'created_at': job.created_at,
        }

    def get_bid(self, obj):
        return BidSerializer(obj['bid']).data
