from django.urls import path
from .views import AuditLogAPIView, RecentEventsAPIView

urlpatterns = [
    path('audit-logs/', AuditLogAPIView.as_view(), name='audit-logs'),
    path('recent-events/', RecentEventsAPIView.as_view(), name='recent-events'),
]
