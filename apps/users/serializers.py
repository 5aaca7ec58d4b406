from rest_framework import serializers
from django.contrib.auth import get_user_model
from .models import ContractorProfile

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    company = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'role', 'company']

    def get_company(self, obj):
        try:
            return obj.contractor_profile.company
        except ContractorProfile.DoesNotExist:
            return None


class ContractorProfileSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ContractorProfile
        fields = [
            'id', 'user', 'company', 'specializations', 'location',
            'active_projects', 'completed_projects', 'total_earnings', 'join_date',
        ]
        read_only_fields = ['active_projects', 'completed_projects', 'total_earnings', 'join_date']
