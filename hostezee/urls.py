from django.contrib import admin
from django.urls import path, include
from django.views.decorators.csrf import csrf_exempt
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from utils.razorpay.razorpay_webhook_api import RazorpayWebhookAPIView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('api/v1/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('api/v1/admin_app/', include('admin_app.urls')),
    path('api/v1/', include('bookings.urls')),
    path('api/v1/billing/', include('billing.urls')),

    path("api/v1/razorpay-webhook/", csrf_exempt(RazorpayWebhookAPIView.as_view())),
]
