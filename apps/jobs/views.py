from decimal import Decimal, InvalidOperation
import logging
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from core.exceptions import MarketplaceError, JobNotFound, Forbidden
from core.pagination import StandardPagination
from core.utils import IsContractor, IsCustomerOrAdmin, error_response
from apps.notifications.dispatcher import NotificationDispatcher
from .models import Job
from .repository import JobRepository
from .bids import BidLifecycleManager
from .assignment import AssignmentCoordinator
from .postings import JobPostingService
from .serializers import (
    JobSerializer, JobWithBidsSerializer, JobWriteSerializer, BidSerializer, BidSubmitSerializer,
    BidEditSerializer, ResponseNoteSerializer, CancelJobSerializer, MyBidSerializer,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ('created_at', 'budget_min', 'budget_max', 'title', 'bid_count')

note_body = openapi.Schema(
    type=openapi.TYPE_OBJECT,
    properties={'note': openapi.Schema(type=openapi.TYPE_STRING, nullable=True)},
)


def _decimal_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


def _paginate(request, view, queryset, serializer_class, context=None):
    paginator = StandardPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    serializer = serializer_class(page, many=True, context=context or {})
    return paginator.get_paginated_response(serializer.data)


class JobListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description=(
            "List jobs. Contractors see open jobs, customers their own postings, admins everything."
        ),
        manual_parameters=[
            openapi.Parameter(name, openapi.IN_QUERY, type=openapi.TYPE_STRING)
            for name in ('status', 'city', 'specialization', 'budget_min', 'budget_max',
                         'work_type', 'search', 'sort_by', 'sort_order', 'page', 'limit')
        ],
        responses={200: JobSerializer(many=True), 401: 'Unauthorized'}
    )
    def get(self, request):
        params = request.query_params
        job_status = params.get('status')
        filters = {
            'city': params.get('city'),
            'specialization': params.get('specialization'),
            'budget_min': _decimal_param(request, 'budget_min'),
            'budget_max': _decimal_param(request, 'budget_max'),
            'work_type': params.get('work_type'),
            'search': params.get('search'),
        }
        if request.user.is_contractor:
            queryset = Job.objects.open_jobs(**filters)
        else:
            queryset = Job.objects.matching(**filters)
            if not request.user.is_admin:
                queryset = queryset.posted_by(request.user)
            if job_status:
                queryset = queryset.filter(status=job_status)

        sort_by = params.get('sort_by', 'created_at')
        if sort_by not in SORTABLE_FIELDS:
            sort_by = 'created_at'
        ordering = sort_by if params.get('sort_order') == 'asc' else f'-{sort_by}'
        queryset = queryset.select_related('project', 'posted_by', 'assigned_contractor').order_by(ordering, '-pk')
        return _paginate(request, self, queryset, JobSerializer)

    @swagger_auto_schema(
        operation_description="Post a new job against one of your projects.",
        request_body=JobWriteSerializer,
        responses={201: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Project not found'}
    )
    def post(self, request):
        if not (request.user.is_customer or request.user.is_admin):
            return error_response(Forbidden("Only customers can post jobs"))
        serializer = JobWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = dict(serializer.validated_data)
        project_id = data.pop('project_id')
        publish = data.pop('publish', True)
        data.pop('status', None)
        try:
            job = JobPostingService().create_job(project_id, request.user, data, publish=publish)
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


class MyPostingsView(APIView):
    permission_classes = [IsAuthenticated, IsCustomerOrAdmin]

    @swagger_auto_schema(
        operation_description="Jobs posted by the current user, with a summary of their bids.",
        responses={200: JobWithBidsSerializer(many=True)}
    )
    def get(self, request):
        queryset = Job.objects.posted_by(request.user).select_related(
            'project', 'posted_by', 'assigned_contractor'
        ).prefetch_related('bids__contractor')
        job_status = request.query_params.get('status')
        if job_status:
            queryset = queryset.filter(status=job_status)
        return _paginate(request, self, queryset, JobWithBidsSerializer)


class MyBidsView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="The current contractor's bids, one entry per job.",
        manual_parameters=[openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING)],
        responses={200: MyBidSerializer(many=True)}
    )
    def get(self, request):
        bid_status = request.query_params.get('status')
        jobs = Job.objects.bid_on_by(request.user).select_related('project').prefetch_related('bids__contractor')
        entries = []
        for job in jobs:
            mine = [b for b in job.bid_list if b.contractor_id == request.user.pk]
            if not mine:
                continue
            bid = mine[-1]
            if bid_status and bid.status != bid_status:
                continue
            entries.append({'job': job, 'bid': bid})
        entries.sort(key=lambda e: e['bid'].submitted_at, reverse=True)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(entries, request, view=self)
        return paginator.get_paginated_response(MyBidSerializer(page, many=True).data)


class AssignedJobsView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Jobs assigned to the current contractor that are not finished yet.",
        responses={200: JobSerializer(many=True)}
    )
    def get(self, request):
        jobs = Job.objects.assigned_to(request.user).select_related(
            'project', 'posted_by', 'assigned_contractor'
        ).order_by('-assigned_at')
        return Response(JobSerializer(jobs, many=True).data)


class JobDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Job details. Contractors only see their own bid.",
        responses={200: JobWithBidsSerializer, 404: 'Not Found'}
    )
    def get(self, request, pk):
        repository = JobRepository()
        try:
            job = repository.load(pk)
        except JobNotFound as e:
            return error_response(e)
        if request.user.is_contractor and job.status == 'open':
            repository.record_view(job.pk)
            job.view_count += 1
        visible_to = None if job.is_poster_or_admin(request.user) else request.user
        serializer = JobWithBidsSerializer(job, context={'bids_visible_to': visible_to})
        return Response(serializer.data)

    @swagger_auto_schema(
        operation_description="Update a job that has not been assigned yet. Status may move between open and in_review.",
        request_body=JobWriteSerializer,
        responses={200: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def patch(self, request, pk):
        serializer = JobWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = dict(serializer.validated_data)
        data.pop('project_id', None)
        data.pop('publish', None)
        try:
            job = JobPostingService().update_job(pk, request.user, data)
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data)

    @swagger_auto_schema(
        operation_description="Cancel a job that has not been assigned yet. Pending bids are rejected.",
        request_body=CancelJobSerializer,
        responses={200: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def delete(self, request, pk):
        serializer = CancelJobSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            job = AssignmentCoordinator().cancel_job(pk, request.user, serializer.validated_data['reason'])
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data)


class JobPublishView(APIView):
    permission_classes = [IsAuthenticated, IsCustomerOrAdmin]

    @swagger_auto_schema(
        operation_description="Open a draft job for bidding.",
        responses={200: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found'}
    )
    def post(self, request, pk):
        try:
            job = JobPostingService().publish_job(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data)


class JobBidsView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = 'bids'

    def get_throttles(self):
        if self.request.method == 'POST':
            return [ScopedRateThrottle()]
        return []

    @swagger_auto_schema(
        operation_description="All bids on a job, with a status summary (poster or admin only).",
        responses={200: BidSerializer(many=True), 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        try:
            job = JobRepository().load(pk)
        except JobNotFound as e:
            return error_response(e)
        if not job.is_poster_or_admin(request.user):
            return error_response(Forbidden("You can only view bids on your own jobs"))
        return Response({
            'job_id': job.pk,
            'job_title': job.title,
            'job_status': job.status,
            'bids': BidSerializer(job.bid_list, many=True).data,
            'summary': job.bid_summary(),
        })

    @swagger_auto_schema(
        operation_description="Submit a bid on an open job (contractors only, one active bid per job).",
        request_body=BidSubmitSerializer,
        responses={
            201: BidSerializer,
            400: 'Bad Request / job not open / duplicate bid',
            403: 'Forbidden',
            404: 'Not Found',
            409: 'Conflict',
        }
    )
    def post(self, request, pk):
        if not request.user.is_contractor:
            return error_response(Forbidden("Only contractors can submit bids"))
        serializer = BidSubmitSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            job, bid = BidLifecycleManager().submit_bid(pk, request.user, **serializer.validated_data)
        except MarketplaceError as e:
            return error_response(e)

        NotificationDispatcher().notify_after_commit(job.posted_by_id, 'bid-submitted', {
            'job_id': job.pk,
            'job_title': job.title,
            'project_id': job.project_id,
            'bid_id': bid.pk,
            'contractor_name': request.user.display_name,
            'amount': bid.amount,
            'proposal': bid.proposal[:100],
            'link': f"/jobs/{job.pk}/bids/",
        })
        return Response(BidSerializer(bid).data, status=status.HTTP_201_CREATED)


class BidDetailView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Revise a pending bid (bid owner only).",
        request_body=BidEditSerializer,
        responses={200: BidSerializer, 400: 'Bid not pending', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def patch(self, request, pk, bid_id):
        serializer = BidEditSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            job, bid = BidLifecycleManager().edit_bid(pk, bid_id, request.user, **serializer.validated_data)
        except MarketplaceError as e:
            return error_response(e)
        return Response(BidSerializer(bid).data)


class BidWithdrawView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Withdraw a pending bid. Irreversible.",
        responses={200: BidSerializer, 400: 'Bid not pending', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def post(self, request, pk, bid_id):
        try:
            job, bid = BidLifecycleManager().withdraw_bid(pk, bid_id, request.user)
        except MarketplaceError as e:
            return error_response(e)

        NotificationDispatcher().notify_after_commit(job.posted_by_id, 'bid-withdrawn', {
            'job_id': job.pk,
            'job_title': job.title,
            'project_id': job.project_id,
            'bid_id': bid.pk,
            'contractor_name': request.user.display_name,
        })
        return Response(BidSerializer(bid).data)


class BidAcceptView(APIView):
    permission_classes = [IsAuthenticated, IsCustomerOrAdmin]

    @swagger_auto_schema(
        operation_description=(
            "Accept a bid. All other pending bids are rejected and the job moves to assigned in one write."
        ),
        request_body=note_body,
        responses={200: JobWithBidsSerializer, 400: 'Invalid transition', 403: 'Forbidden', 404: 'Not Found',
                   409: 'Conflict'}
    )
    def post(self, request, pk, bid_id):
        serializer = ResponseNoteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            job, bid = AssignmentCoordinator().accept_bid(pk, bid_id, request.user, serializer.validated_data['note'])
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobWithBidsSerializer(job).data)


class BidRejectView(APIView):
    permission_classes = [IsAuthenticated, IsCustomerOrAdmin]

    @swagger_auto_schema(
        operation_description="Reject a pending bid.",
        request_body=note_body,
        responses={200: BidSerializer, 400: 'Bid not pending', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def post(self, request, pk, bid_id):
        serializer = ResponseNoteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        note = serializer.validated_data['note']
        try:
            job, bid = BidLifecycleManager().reject_bid(pk, bid_id, request.user, note)
        except MarketplaceError as e:
            return error_response(e)

        NotificationDispatcher().notify_after_commit(bid.contractor_id, 'bid-rejected', {
            'job_id': job.pk,
            'job_title': job.title,
            'project_id': job.project_id,
            'bid_id': bid.pk,
            'note': note,
        })
        return Response(BidSerializer(bid).data)


class JobStartView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Start work on an assigned job (assigned contractor only).",
        responses={200: JobSerializer, 400: 'Invalid transition', 403: 'Not assigned', 404: 'Not Found'}
    )
    def post(self, request, pk):
        try:
            job = AssignmentCoordinator().start_job(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data)


class JobCompleteView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Mark an in-progress job as completed (assigned contractor only).",
        responses={200: JobSerializer, 400: 'Invalid transition', 403: 'Not assigned', 404: 'Not Found'}
    )
    def post(self, request, pk):
        try:
            job = AssignmentCoordinator().complete_job(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response(JobSerializer(job).data)
