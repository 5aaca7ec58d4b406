from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import permissions
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from core.utils import IsContractor
from .models import ContractorProfile
from .workload import ContractorWorkloadLedger
from .serializers import ContractorProfileSerializer


class MyWorkloadView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Workload counters for the current contractor.",
        responses={
            200: openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    'profile': openapi.Schema(type=openapi.TYPE_OBJECT),
                    'active_projects': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'completed_projects': openapi.Schema(type=openapi.TYPE_INTEGER),
                    'total_earnings': openapi.Schema(type=openapi.TYPE_STRING),
                }
            ),
            403: 'Contractors only',
        }
    )
    def get(self, request):
        ledger = ContractorWorkloadLedger()
        stats = ledger.stats(request.user.pk)
        profile = ContractorProfile.objects.get(user=request.user)
        return Response({
            'profile': ContractorProfileSerializer(profile).data,
            'active_projects': stats['active_projects'],
            'completed_projects': stats['completed_projects'],
            'total_earnings': str(stats['total_earnings']),
        })
