from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone


class UserRole(models.TextChoices):
    ADMIN = 'ADMIN', 'Administrator'
    CONTENT_MANAGER = 'CONTENT_MANAGER', 'Content Manager'
    CUSTOMER = 'CUSTOMER', 'Customer'


class Permission(models.TextChoices):
    MANAGE_PRODUCTS = 'MANAGE_PRODUCTS', 'Manage products'
    MANAGE_QUOTES = 'MANAGE_QUOTES', 'Manage quotes'
    MANAGE_USERS = 'MANAGE_USERS', 'Manage users'
    MANAGE_MEDIA = 'MANAGE_MEDIA', 'Manage media'
    VIEW_ANALYTICS = 'VIEW_ANALYTICS', 'View analytics'


# Roles allowed to sign in to the back office
STAFF_ROLES = (UserRole.ADMIN, UserRole.CONTENT_MANAGER)


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email address must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)
        extra_fields.setdefault('permissions', [choice.value for choice in Permission])
        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')
        return self._create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """Back-office user; signs in with email and password"""
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200, blank=True)
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.CUSTOMER, db_index=True)
    permissions = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name or self.email

    @property
    def is_admin_role(self):
        return self.role == UserRole.ADMIN

    @property
    def is_staff_role(self):
        return self.role in STAFF_ROLES

    def has_app_permission(self, permission):
        """Admins hold every permission; others only what was granted"""
        if not self.is_active:
            return False
        if self.role == UserRole.ADMIN:
            return True
        return permission in (self.permissions or [])

    class Meta:
        db_table = 'users'
        ordering = ['email']


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for catalog, quote and media changes"""
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('STATUS_CHANGE', 'Status Change'),
        ('UPLOAD', 'Upload'),
        ('DOWNLOAD', 'Download'),
        ('LOGIN', 'Login'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, quote number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_8a1f3c_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5b7d2e_idx'),
            models.Index(fields=['model_name', 'object_id'], name='audit_logs_model_n_c4e901_idx'),
        ]
