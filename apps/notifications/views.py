from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from core.pagination import StandardPagination
from .models import Notification
from .serializers import NotificationSerializer
import logging

logger = logging.getLogger(__name__)


class NotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Your unexpired notifications, newest first.",
        manual_parameters=[
            openapi.Parameter('unread', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
            openapi.Parameter('page', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: NotificationSerializer(many=True)}
    )
    def get(self, request):
        notifications = Notification.objects.for_user(request.user).active()
        if request.query_params.get('unread') in ('true', '1'):
            notifications = notifications.filter(read=False)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(notifications, request, view=self)
        response = paginator.get_paginated_response(NotificationSerializer(page, many=True).data)
        response.data['unread_count'] = Notification.objects.unread_count(request.user)
        return response

    @swagger_auto_schema(
        operation_description="Clear all of your notifications.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT, properties={
            'message': openapi.Schema(type=openapi.TYPE_STRING),
            'deleted': openapi.Schema(type=openapi.TYPE_INTEGER),
        })}
    )
    def delete(self, request):
        deleted, _ = Notification.objects.for_user(request.user).delete()
        logger.info(f"User {request.user.pk} cleared {deleted} notifications")
        return Response({"message": "All notifications cleared", "deleted": deleted}, status=status.HTTP_200_OK)


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Number of unread, unexpired notifications.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT, properties={
            'count': openapi.Schema(type=openapi.TYPE_INTEGER)
        })}
    )
    def get(self, request):
        return Response({"count": Notification.objects.unread_count(request.user)})


class NotificationReadView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Mark one notification as read.",
        responses={200: NotificationSerializer, 404: 'Not Found'}
    )
    def post(self, request, pk):
        try:
            notification = Notification.objects.for_user(request.user).get(pk=pk)
        except Notification.DoesNotExist:
            return Response({"error": "Notification not found"}, status=status.HTTP_404_NOT_FOUND)
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)


class NotificationReadAllView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Mark all of your notifications as read.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT, properties={
            'updated': openapi.Schema(type=openapi.TYPE_INTEGER)
        })}
    )
    def post(self, request):
        updated = Notification.objects.mark_all_read(request.user)
        logger.info(f"User {request.user.pk} marked {updated} notifications as read")
        return Response({"message": "All notifications marked as read", "updated": updated})


class NotificationDeleteView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Delete one of your notifications.",
        responses={200: 'Deleted', 404: 'Not Found'}
    )
    def delete(self, request, pk):
        deleted, _ = Notification.objects.for_user(request.user).filter(pk=pk).delete()
        if not deleted:
            return Response({"error": "Notification not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response({"message": "Notification deleted"}, status=status.HTTP_200_OK)
