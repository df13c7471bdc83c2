from django.db import models
from django.core.serializers.json import DjangoJSONEncoder
from django.contrib.auth.models import BaseUserManager, AbstractBaseUser, PermissionsMixin


class BaseModel(models.Model):
    """Model for subclassing."""
    created_on = models.DateTimeField(auto_now_add=True, null=True)
    updated_on = models.DateTimeField(auto_now=True)
    is_deleted = models.BooleanField(default=False)

    class Meta:
        abstract = True
        ordering = ['-created_on']


class UserManager(BaseUserManager):

    def create_user(self, username=None, password=None, name=None, email=None, mobile_number=None,
                    role='staff', assigned_property_id=None, is_active=True):

        if not username:
            raise ValueError('User must have an username')

        user = self.model(
            email=self.normalize_email(email),
            username=username,
            name=name,
            mobile_number=mobile_number,
            role=role,
            assigned_property_id=assigned_property_id,
            is_active=is_active,
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, password, email=None, name=None):
        user = self.create_user(
            username=username,
            password=password,
            email=email,
            name=name,
            role='admin',
        )
        user.is_admin = True
        user.is_staff = True
        user.is_superuser = True

        user.save(using=self._db)
        return user


SELECTROLE = (
    ('admin', 'Admin'),
    ('manager', 'Manager'),
    ('staff', 'Staff'),
    ('kitchen', 'Kitchen'),
)


class User(AbstractBaseUser, PermissionsMixin):
    name = models.CharField(max_length=100, blank=True, null=True)
    username = models.CharField(max_length=50, unique=True)
    email = models.EmailField(max_length=100, blank=True, null=True)
    mobile_number = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=SELECTROLE, default='staff')
    # Managers and kitchen users only see data of this property
    assigned_property_id = models.IntegerField(blank=True, null=True)
    is_admin = models.BooleanField(default=False)
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(auto_now_add=True)

    USERNAME_FIELD = 'username'

    REQUIRED_FIELDS = []

    objects = UserManager()

    def __str__(self):
        return self.username

    @property
    def is_property_scoped(self):
        return self.role in ('manager', 'kitchen')

    class Meta:
        db_table = "user"


class AuditLog(BaseModel):
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=100)
    action = models.CharField(max_length=50)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    user_role = models.CharField(max_length=20, blank=True, null=True)
    property_context = models.JSONField(blank=True, null=True)
    change_set = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    metadata = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)

    def __str__(self):
        return f"AuditLog {self.id} | {self.entity_type}:{self.entity_id} | {self.action}"
