from rest_framework import serializers
from .models import Property, Room, Guest, Booking, Order, ExtraService, BOOKING_STATUS, ORDER_STATUS


class PropertySerializer(serializers.ModelSerializer):
    class Meta:
        model = Property
        fields = ['id', 'name', 'location', 'description', 'contact_email', 'contact_phone', 'is_active']


class RoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = Room
        fields = ['id', 'property', 'room_number', 'room_type', 'status', 'price_per_night', 'max_occupancy']


class GuestSerializer(serializers.ModelSerializer):
    class Meta:
        model = Guest
        fields = ['id', 'full_name', 'phone', 'email', 'id_proof_type', 'id_proof_number', 'address']


class BookingSerializer(serializers.ModelSerializer):
    guest_details = GuestSerializer(source='guest', read_only=True)
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)

    class Meta:
        model = Booking
        fields = [
            'id', 'property', 'room', 'room_number', 'room_ids', 'is_group_booking', 'guest', 'guest_details',
            'check_in_date', 'check_out_date', 'number_of_guests', 'status', 'custom_price',
            'advance_amount', 'total_amount', 'source', 'created_on',
        ]
        read_only_fields = ['status']

    def validate(self, attrs):
        check_in = attrs.get('check_in_date', getattr(self.instance, 'check_in_date', None))
        check_out = attrs.get('check_out_date', getattr(self.instance, 'check_out_date', None))
        if check_in and check_out and check_out < check_in:
            raise serializers.ValidationError({'check_out_date': "Check-out date cannot be before check-in date"})

        is_group = attrs.get('is_group_booking', getattr(self.instance, 'is_group_booking', False))
        room_ids = attrs.get('room_ids', getattr(self.instance, 'room_ids', None))
        room = attrs.get('room', getattr(self.instance, 'room', None))
        if is_group and not room_ids:
            raise serializers.ValidationError({'room_ids': "Group bookings need at least one room"})
        if not is_group and not room:
            raise serializers.ValidationError({'room': "Room is required"})
        if is_group:
            if not all(isinstance(room_id, int) for room_id in room_ids):
                raise serializers.ValidationError({'room_ids': "Room ids must be integers"})
            if Room.objects.filter(id__in=room_ids, is_deleted=False).count() != len(set(room_ids)):
                raise serializers.ValidationError({'room_ids': "One or more rooms not found"})
        return attrs


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice[0] for choice in BOOKING_STATUS])


class BookingChargesSerializer(serializers.Serializer):
    nights = serializers.IntegerField()
    room_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    food_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    extra_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    advance_paid = serializers.DecimalField(max_digits=12, decimal_places=2)


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            'id', 'booking', 'property', 'room', 'guest', 'order_type', 'items', 'total_amount',
            'status', 'special_instructions', 'created_on',
        ]
        read_only_fields = ['status']

    def validate_total_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Total amount cannot be negative")
        return value


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice[0] for choice in ORDER_STATUS])


class MergeOrdersSerializer(serializers.Serializer):
    order_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    booking_id = serializers.IntegerField()


class ExtraServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExtraService
        fields = ['id', 'booking', 'service_name', 'service_type', 'description', 'amount', 'service_date']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero")
        return value
