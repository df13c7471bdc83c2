from django.urls import path
from .views import *

urlpatterns = [
    path('properties/', PropertyAPIView.as_view(), name='properties'),
    path('rooms/', RoomAPIView.as_view(), name='rooms'),
    path('guests/', GuestAPIView.as_view(), name='guests'),
    path('bookings/', BookingAPIView.as_view(), name='bookings'),
    path('bookings/<int:booking_id>/', BookingDetailAPIView.as_view(), name='booking-detail'),
    path('bookings/<int:booking_id>/status/', BookingStatusAPIView.as_view(), name='booking-status'),
    path('bookings/<int:booking_id>/charges/', BookingChargesAPIView.as_view(), name='booking-charges'),
    path('orders/', OrderAPIView.as_view(), name='orders'),
    path('orders/unmerged-cafe/', UnmergedCafeOrdersAPIView.as_view(), name='orders-unmerged-cafe'),
    path('orders/merge-to-booking/', MergeOrdersToBookingAPIView.as_view(), name='orders-merge-to-booking'),
    path('orders/<int:order_id>/status/', OrderStatusAPIView.as_view(), name='order-status'),
    path('extra-services/', ExtraServiceAPIView.as_view(), name='extra-services'),
    path('extra-services/<int:service_id>/', ExtraServiceDetailAPIView.as_view(), name='extra-service-detail'),
    path('extra-services/booking/<int:booking_id>/', BookingExtraServicesAPIView.as_view(),
         name='extra-services-by-booking'),
]
