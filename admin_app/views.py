import logging
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from .models import AuditLog
from .serializers import AuditLogSerializer
from .apps import get_event_bus
from utils.authentication.customPermissions import IsAdminRole

logger = logging.getLogger(__name__)


class AuditLogAPIView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        try:
            logs = AuditLog.objects.filter(is_deleted=False)
            entity_type = request.query_params.get('entity_type')
            entity_id = request.query_params.get('entity_id')
            if entity_type:
                logs = logs.filter(entity_type=entity_type)
            if entity_id:
                logs = logs.filter(entity_id=entity_id)
            serializer = AuditLogSerializer(logs[:200], many=True)
            return Response(serializer.data, status=status.HTTP_200_OK)
        except Exception as e:
            logger.error(f"Error occurred in AuditLogAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class RecentEventsAPIView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        try:
            limit = int(request.query_params.get('limit', 10))
        except ValueError:
            return Response({"error": "limit must be an integer"}, status=status.HTTP_400_BAD_REQUEST)
        events = get_event_bus().recent_events(limit)
        return Response(events, status=status.HTTP_200_OK)
