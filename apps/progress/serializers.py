from rest_framework import serializers
from apps.users.serializers import UserSummarySerializer
from core.constants import (
    PROGRESS_UPDATE_TYPE_CHOICES, WORK_ITEM_STATUS_CHOICES, SEVERITY_CHOICES, WEATHER_IMPACT_CHOICES,
)
from .models import ProgressUpdate, ProgressComment


class PhotoSerializer(serializers.Serializer):
    url = serializers.URLField(max_length=500)
    caption = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class WorkItemSerializer(serializers.Serializer):
    task = serializers.CharField(max_length=300)
    status = serializers.ChoiceField(choices=WORK_ITEM_STATUS_CHOICES, default='completed')
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class MaterialSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    quantity = serializers.FloatField(min_value=0)
    unit = serializers.CharField(max_length=30, required=False, default='units')
    cost = serializers.FloatField(min_value=0, required=False, allow_null=True, default=None)


class IssueSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=1000)
    severity = serializers.ChoiceField(choices=SEVERITY_CHOICES, default='medium')
    resolved = serializers.BooleanField(default=False)
    resolved_at = serializers.CharField(required=False, allow_null=True, default=None)
    resolution = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class BlockerSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=1000)
    severity = serializers.ChoiceField(choices=SEVERITY_CHOICES, default='medium')
    resolved = serializers.BooleanField(default=False)


class WeatherSerializer(serializers.Serializer):
    condition = serializers.CharField(max_length=100, required=False, allow_blank=True)
    temperature = serializers.FloatField(required=False, allow_null=True)
    humidity = serializers.FloatField(required=False, allow_null=True, min_value=0, max_value=100)
    impact = serializers.ChoiceField(choices=WEATHER_IMPACT_CHOICES, default='none')


class ProgressWriteSerializer(serializers.Serializer):
    """Validates the content of a progress update before it reaches the ledger."""
    project_id = serializers.IntegerField(required=False)
    job_id = serializers.IntegerField(required=False)
    stage_id = serializers.IntegerField(required=False)
    type = serializers.ChoiceField(choices=PROGRESS_UPDATE_TYPE_CHOICES, required=False)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(max_length=5000, required=False)
    photo_urls = PhotoSerializer(many=True, required=False)
    work_done = WorkItemSerializer(many=True, required=False)
    materials_used = MaterialSerializer(many=True, required=False)
    issues = IssueSerializer(many=True, required=False)
    weather = WeatherSerializer(required=False)
    workers_on_site = serializers.IntegerField(min_value=0, required=False)
    hours_worked = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False)
    progress_percentage = serializers.IntegerField(min_value=0, max_value=100, required=False, allow_null=True)
    next_steps = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    blockers = BlockerSerializer(many=True, required=False)
    customer_visible = serializers.BooleanField(required=False)

    def validate(self, data):
        if not self.partial:
            if 'project_id' not in data and 'job_id' not in data:
                raise serializers.ValidationError({"project_id": "A project or job is required."})
            if not (data.get('description') or '').strip():
                raise serializers.ValidationError({"description": "Description is required."})
        return data


class ProgressCommentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProgressComment
        fields = ['id', 'user', 'text', 'created_at']
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=2000)


class ResolveIssueSerializer(serializers.Serializer):
    resolution = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class ProgressUpdateSerializer(serializers.ModelSerializer):
    contractor = UserSummarySerializer(read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)
    stage_name = serializers.CharField(source='stage.name', read_only=True, default=None)
    comments = ProgressCommentSerializer(many=True, read_only=True)
    total_materials_cost = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    unresolved_issues_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = ProgressUpdate
        fields = [
            'id', 'project', 'project_name', 'stage', 'stage_name', 'job', 'contractor', 'type',
            'title', 'description', 'photo_urls', 'work_done', 'materials_used', 'issues', 'weather',
            'workers_on_site', 'hours_worked', 'progress_percentage', 'next_steps', 'blockers',
            'customer_visible', 'customer_acknowledged', 'acknowledged_at', 'acknowledged_by',
            'total_materials_cost', 'unresolved_issues_count', 'comments', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
