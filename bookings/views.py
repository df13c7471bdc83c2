import logging
from django.db import transaction
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from admin_app.apps import get_event_bus
from admin_app.audit import AuditService
from utils.authentication.customPermissions import IsAdminRole, IsBillingRole, property_scope
from utils.event_bus import EventTypes
from .models import Property, Room, Guest, Booking, Order, ExtraService
from .serializers import *
from .services import get_booking_charges, update_booking_status, BookingStatusError

logger = logging.getLogger(__name__)


def scoped(queryset, request, field='property_id'):
    property_id = property_scope(request.user)
    if property_id:
        return queryset.filter(**{field: property_id})
    return queryset


class PropertyAPIView(APIView):

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAdminRole()]
        return super().get_permissions()

    def get(self, request):
        properties = scoped(Property.objects.filter(is_deleted=False, is_active=True), request, 'id')
        serializer = PropertySerializer(properties, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = PropertySerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class RoomAPIView(APIView):

    def get(self, request):
        rooms = scoped(Room.objects.filter(is_deleted=False), request)
        property_id = request.query_params.get('property')
        if property_id:
            rooms = rooms.filter(property_id=property_id)
        room_status = request.query_params.get('status')
        if room_status:
            rooms = rooms.filter(status=room_status)
        serializer = RoomSerializer(rooms.order_by('room_number'), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = RoomSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class GuestAPIView(APIView):

    def get(self, request):
        guests = Guest.objects.filter(is_deleted=False)
        phone = request.query_params.get('phone')
        if phone:
            guests = guests.filter(phone__icontains=phone)
        serializer = GuestSerializer(guests, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = GuestSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class BookingAPIView(APIView):

    def get(self, request):
        try:
            bookings = scoped(Booking.objects.filter(is_deleted=False).select_related('guest', 'room'), request)
            booking_status = request.query_params.get('status')
            if booking_status:
                bookings = bookings.filter(status=booking_status)
            serializer = BookingSerializer(bookings, many=True)
            return Response(serializer.data, status=status.HTTP_200_OK)
        except Exception as e:
            logger.error(f"Error occurred in BookingAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    def post(self, request):
        serializer = BookingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            booking = serializer.save()
            event_bus = get_event_bus()
            event_bus.publish(
                EventTypes.BOOKING_CREATED,
                data={'booking_id': booking.id, 'status': booking.status},
                user_id=request.user.id,
                property_id=booking.property_id,
            )
            AuditService(event_bus).log_create('booking', booking.id, request.user, serializer.data)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        except Exception as e:
            logger.error(f"Error occurred in BookingAPIView POST: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class BookingDetailAPIView(APIView):

    def get(self, request, booking_id):
        booking = scoped(Booking.objects.filter(id=booking_id, is_deleted=False), request).first()
        if not booking:
            return Response({"error": "Booking not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)


class BookingStatusAPIView(APIView):

    def patch(self, request, booking_id):
        serializer = BookingStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        booking = scoped(Booking.objects.filter(id=booking_id, is_deleted=False), request).first()
        if not booking:
            return Response({"error": "Booking not found"}, status=status.HTTP_404_NOT_FOUND)

        previous_status = booking.status
        try:
            event_bus = get_event_bus()
            with transaction.atomic():
                booking = update_booking_status(booking, serializer.validated_data['status'], event_bus, request.user)
            AuditService(event_bus).log_update(
                'booking', booking.id, request.user, {'status': previous_status}, {'status': booking.status}
            )
            return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)
        except BookingStatusError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.error(f"Error occurred in BookingStatusAPIView PATCH: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class BookingChargesAPIView(APIView):

    def get(self, request, booking_id):
        booking = scoped(Booking.objects.filter(id=booking_id, is_deleted=False), request).first()
        if not booking:
            return Response({"error": "Booking not found"}, status=status.HTTP_404_NOT_FOUND)
        try:
            serializer = BookingChargesSerializer(get_booking_charges(booking))
            return Response(serializer.data, status=status.HTTP_200_OK)
        except Exception as e:
            logger.error(f"Error occurred in BookingChargesAPIView GET: {e}")
            return Response({"error": "An error occurred"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class OrderAPIView(APIView):

    def get(self, request):
        orders = scoped(Order.objects.filter(is_deleted=False), request)
        booking_id = request.query_params.get('booking')
        if booking_id:
            orders = orders.filter(booking_id=booking_id)
        order_status = request.query_params.get('status')
        if order_status:
            orders = orders.filter(status=order_status)
        serializer = OrderSerializer(orders, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = OrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        booking = data.get('booking')
        room = data.get('room')
        # fill in what the kitchen screen does not send
        if booking:
            data['guest'] = data.get('guest') or booking.guest
            data['property'] = data.get('property') or booking.property
            data['room'] = room or booking.room
        elif room:
            data['property'] = data.get('property') or room.property
        if not data.get('property'):
            return Response({"error": "Property is required"}, status=status.HTTP_400_BAD_REQUEST)

        order = serializer.save()
        get_event_bus().publish(
            EventTypes.ORDER_PLACED,
            data={'order_id': order.id, 'booking_id': order.booking_id, 'total_amount': str(order.total_amount)},
            user_id=request.user.id,
            property_id=order.property_id,
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderStatusAPIView(APIView):

    def patch(self, request, order_id):
        serializer = OrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        order = scoped(Order.objects.filter(id=order_id, is_deleted=False), request).first()
        if not order:
            return Response({"error": "Order not found"}, status=status.HTTP_404_NOT_FOUND)

        order.status = serializer.validated_data['status']
        order.save(update_fields=['status', 'updated_on'])
        get_event_bus().publish(
            EventTypes.ORDER_UPDATED,
            data={'order_id': order.id, 'booking_id': order.booking_id, 'status': order.status},
            user_id=request.user.id,
            property_id=order.property_id,
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)


class UnmergedCafeOrdersAPIView(APIView):
    """Walk-in restaurant orders not yet attached to any booking."""

    def get(self, request):
        orders = scoped(
            Order.objects.filter(is_deleted=False, booking__isnull=True, order_type='restaurant'), request
        ).exclude(status='cancelled')
        serializer = OrderSerializer(orders, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)


class MergeOrdersToBookingAPIView(APIView):
    permission_classes = [IsBillingRole]

    def patch(self, request):
        serializer = MergeOrdersSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        order_ids = serializer.validated_data['order_ids']

        booking = scoped(
            Booking.objects.filter(id=serializer.validated_data['booking_id'], is_deleted=False), request
        ).first()
        if not booking:
            return Response({"error": "Booking not found"}, status=status.HTTP_404_NOT_FOUND)
        if booking.status in ('checked-out', 'cancelled'):
            return Response({"error": f"Cannot add orders to a {booking.status} booking"},
                            status=status.HTTP_400_BAD_REQUEST)

        orders = Order.objects.filter(id__in=order_ids, is_deleted=False, booking__isnull=True)
        if orders.count() != len(set(order_ids)):
            return Response({"error": "One or more orders not found or already merged"},
                            status=status.HTTP_400_BAD_REQUEST)

        updated = orders.update(booking=booking, guest=booking.guest, property=booking.property)
        event_bus = get_event_bus()
        for order_id in order_ids:
            event_bus.publish(
                EventTypes.ORDER_UPDATED,
                data={'order_id': order_id, 'booking_id': booking.id, 'action': 'merged_to_booking'},
                user_id=request.user.id,
                property_id=booking.property_id,
            )
        AuditService(event_bus).log_custom_action(
            'booking', booking.id, 'merge_orders', request.user, change_set={'order_ids': order_ids}
        )
        return Response({"message": f"{updated} order(s) merged into booking {booking.id}"},
                        status=status.HTTP_200_OK)


class ExtraServiceAPIView(APIView):

    def get(self, request):
        services = scoped(ExtraService.objects.filter(is_deleted=False), request, 'booking__property_id')
        serializer = ExtraServiceSerializer(services, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = ExtraServiceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        service = serializer.save()
        AuditService(get_event_bus()).log_create('extra_service', service.id, request.user, serializer.data)
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class BookingExtraServicesAPIView(APIView):

    def get(self, request, booking_id):
        services = ExtraService.objects.filter(booking_id=booking_id, is_deleted=False)
        serializer = ExtraServiceSerializer(services, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)


class ExtraServiceDetailAPIView(APIView):

    def delete(self, request, service_id):
        services = scoped(ExtraService.objects.filter(is_deleted=False), request, 'booking__property_id')
        service = services.filter(id=service_id).first()
        if not service:
            return Response({"error": "Extra service not found"}, status=status.HTTP_404_NOT_FOUND)
        before = ExtraServiceSerializer(service).data
        service.is_deleted = True
        service.save(update_fields=['is_deleted', 'updated_on'])
        AuditService(get_event_bus()).log_delete('extra_service', service.id, request.user, before)
        return Response(status=status.HTTP_204_NO_CONTENT)
