from django.db import models
from admin_app.models import BaseModel


class Property(BaseModel):
    name = models.CharField(max_length=255)
    location = models.CharField(max_length=255, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    contact_email = models.EmailField(max_length=255, blank=True, null=True)
    contact_phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


ROOM_STATUS = (
    ('available', 'Available'),
    ('occupied', 'Occupied'),
    ('cleaning', 'Cleaning'),
    ('maintenance', 'Maintenance'),
)


class Room(BaseModel):
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='rooms')
    room_number = models.CharField(max_length=50)
    room_type = models.CharField(max_length=50)
    status = models.CharField(max_length=20, choices=ROOM_STATUS, default='available')
    price_per_night = models.DecimalField(max_digits=10, decimal_places=2)
    max_occupancy = models.IntegerField(default=2)

    def __str__(self):
        return f"Room {self.room_number} - {self.property.name} - {self.status}"


class Guest(BaseModel):
    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20)
    email = models.EmailField(max_length=255, blank=True, null=True)
    id_proof_type = models.CharField(max_length=50, blank=True, null=True)
    id_proof_number = models.CharField(max_length=100, blank=True, null=True)
    address = models.TextField(blank=True, null=True)

    def __str__(self):
        return f"{self.full_name} ({self.phone})"


BOOKING_STATUS = (
    ('pending', 'Pending'),
    ('confirmed', 'Confirmed'),
    ('checked-in', 'Checked In'),
    ('checked-out', 'Checked Out'),
    ('cancelled', 'Cancelled'),
)


class Booking(BaseModel):
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='bookings')
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings')
    # Group bookings list every room they hold here
    room_ids = models.JSONField(blank=True, null=True)
    is_group_booking = models.BooleanField(default=False)
    guest = models.ForeignKey(Guest, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings')
    check_in_date = models.DateField()
    check_out_date = models.DateField()
    number_of_guests = models.IntegerField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=BOOKING_STATUS, default='confirmed')
    custom_price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    advance_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    source = models.CharField(max_length=50, default='direct')

    def __str__(self):
        return f"Booking {self.id} - {self.guest} - {self.check_in_date} to {self.check_out_date} - {self.status}"

    def booked_room_ids(self):
        if self.is_group_booking and self.room_ids:
            return list(self.room_ids)
        return [self.room_id] if self.room_id else []


ORDER_STATUS = (
    ('pending', 'Pending'),
    ('preparing', 'Preparing'),
    ('ready', 'Ready'),
    ('completed', 'Completed'),
    ('cancelled', 'Cancelled'),
)

# Orders in these states stop a booking from checking out
BLOCKING_ORDER_STATUSES = ('pending', 'preparing')

ORDER_TYPE = (
    ('room', 'Room Service'),
    ('restaurant', 'Restaurant'),
)


class Order(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    property = models.ForeignKey(Property, on_delete=models.SET_NULL, null=True, blank=True)
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, blank=True)
    guest = models.ForeignKey(Guest, on_delete=models.SET_NULL, null=True, blank=True)
    order_type = models.CharField(max_length=20, choices=ORDER_TYPE, default='room')
    items = models.JSONField(default=list, blank=True)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=ORDER_STATUS, default='pending')
    special_instructions = models.TextField(blank=True, null=True)

    def __str__(self):
        return f"Order {self.id} - booking {self.booking_id} - {self.total_amount} - {self.status}"


SERVICE_TYPE = (
    ('taxi', 'Taxi'),
    ('guide', 'Guide'),
    ('adventure', 'Adventure'),
    ('commission', 'Commission'),
    ('other', 'Other'),
)


class ExtraService(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='extra_services')
    service_name = models.CharField(max_length=100)
    service_type = models.CharField(max_length=20, choices=SERVICE_TYPE, default='other')
    description = models.TextField(blank=True, null=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    service_date = models.DateField(blank=True, null=True)

    def __str__(self):
        return f"{self.service_name} - booking {self.booking_id} - {self.amount}"
