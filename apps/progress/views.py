import logging
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from core.exceptions import MarketplaceError
from core.pagination import StandardPagination
from core.utils import IsContractor, IsCustomerOrAdmin, error_response
from .ledger import ProgressUpdateLedger
from .serializers import (
    ProgressWriteSerializer, ProgressUpdateSerializer, ProgressCommentSerializer,
    CommentCreateSerializer, ResolveIssueSerializer,
)

logger = logging.getLogger(__name__)


class ProgressCreateView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="Post a progress update for a project or job you are assigned to.",
        request_body=ProgressWriteSerializer,
        responses={201: ProgressUpdateSerializer, 400: 'Bad Request', 403: 'Not assigned', 404: 'Not Found'}
    )
    def post(self, request):
        serializer = ProgressWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = dict(serializer.validated_data)
        project_id = data.pop('project_id', None)
        job_id = data.pop('job_id', None)
        stage_id = data.pop('stage_id', None)
        try:
            update = ProgressUpdateLedger().create(
                request.user, data, project_id=project_id, job_id=job_id, stage_id=stage_id
            )
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressUpdateSerializer(update).data, status=status.HTTP_201_CREATED)


class ProjectProgressView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Progress updates for a project, newest first, with a project summary.",
        manual_parameters=[
            openapi.Parameter('type', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('page', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: ProgressUpdateSerializer(many=True), 403: 'Forbidden', 404: 'Project not found'}
    )
    def get(self, request, project_id):
        try:
            updates, summary = ProgressUpdateLedger().list_for_project(
                project_id, request.user, update_type=request.query_params.get('type')
            )
        except MarketplaceError as e:
            return error_response(e)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(updates, request, view=self)
        response = paginator.get_paginated_response(ProgressUpdateSerializer(page, many=True).data)
        response.data['summary'] = summary
        return response


class MyProgressView(APIView):
    permission_classes = [IsAuthenticated, IsContractor]

    @swagger_auto_schema(
        operation_description="The current contractor's own progress updates.",
        manual_parameters=[openapi.Parameter('project_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER)],
        responses={200: ProgressUpdateSerializer(many=True)}
    )
    def get(self, request):
        updates = ProgressUpdateLedger().list_for_contractor(request.user, request.query_params.get('project_id'))
        paginator = StandardPagination()
        page = paginator.paginate_queryset(updates, request, view=self)
        return paginator.get_paginated_response(ProgressUpdateSerializer(page, many=True).data)


class ProgressDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="A single progress update.",
        responses={200: ProgressUpdateSerializer, 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        try:
            update = ProgressUpdateLedger().get(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressUpdateSerializer(update).data)

    @swagger_auto_schema(
        operation_description="Edit your own update inside the edit window.",
        request_body=ProgressWriteSerializer,
        responses={200: ProgressUpdateSerializer, 400: 'Edit window expired', 403: 'Not author', 404: 'Not Found'}
    )
    def patch(self, request, pk):
        serializer = ProgressWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = dict(serializer.validated_data)
        for key in ('project_id', 'job_id', 'stage_id', 'type'):
            data.pop(key, None)
        try:
            update = ProgressUpdateLedger().edit(pk, request.user, data)
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressUpdateSerializer(update).data)

    @swagger_auto_schema(
        operation_description="Delete your own update inside the (shorter) delete window.",
        responses={200: 'Deleted', 400: 'Delete window expired', 403: 'Not author', 404: 'Not Found'}
    )
    def delete(self, request, pk):
        try:
            ProgressUpdateLedger().delete(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response({"message": "Progress update deleted"}, status=status.HTTP_200_OK)


class ProgressAcknowledgeView(APIView):
    permission_classes = [IsAuthenticated, IsCustomerOrAdmin]

    @swagger_auto_schema(
        operation_description="Acknowledge an update as the project owner. Repeating it changes nothing.",
        responses={200: ProgressUpdateSerializer, 403: 'Forbidden', 404: 'Not Found'}
    )
    def post(self, request, pk):
        try:
            update = ProgressUpdateLedger().acknowledge(pk, request.user)
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressUpdateSerializer(update).data)


class ProgressCommentView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Comment on an update you can see.",
        request_body=CommentCreateSerializer,
        responses={201: ProgressCommentSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found'}
    )
    def post(self, request, pk):
        serializer = CommentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            comment = ProgressUpdateLedger().add_comment(pk, request.user, serializer.validated_data['text'])
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressCommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class ResolveIssueView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Mark one of an update's issues as resolved.",
        request_body=ResolveIssueSerializer,
        responses={200: ProgressUpdateSerializer, 403: 'Forbidden', 404: 'Update or issue not found'}
    )
    def post(self, request, pk, index):
        serializer = ResolveIssueSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            update = ProgressUpdateLedger().resolve_issue(
                pk, request.user, index, serializer.validated_data['resolution']
            )
        except MarketplaceError as e:
            return error_response(e)
        return Response(ProgressUpdateSerializer(update).data)
