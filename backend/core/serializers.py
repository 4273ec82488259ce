from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Setting, AuditLog, Permission, UserRole, STAFF_ROLES


class UserSerializer(serializers.ModelSerializer):
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=Permission.choices), required=False
    )
    password = serializers.CharField(write_only=True, required=False, validators=[validate_password])

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'permissions', 'is_active', 'password', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['last_login', 'created_at', 'updated_at']

    def validate_email(self, value):
        return User.objects.normalize_email(value.strip())

    def validate_permissions(self, value):
        # Keep order, drop duplicates
        return list(dict.fromkeys(value))

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=['password'])
        return instance


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=Permission.choices), required=False
    )

    class Meta:
        model = User
        fields = ['email', 'name', 'role', 'permissions', 'password', 'password_confirm']

    def validate_email(self, value):
        return User.objects.normalize_email(value.strip())

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, is_active=True, **validated_data)


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']


class AuditLogUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role']


class AuditLogSerializer(serializers.ModelSerializer):
    user = AuditLogUserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'user_agent', 'created_at']


class CompanyAddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    zip_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100)


class CertificationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    issuer = serializers.CharField(max_length=200)
    valid_until = serializers.DateField(required=False, allow_null=True)


class CompanyProfileSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(max_length=2000, allow_blank=True, required=False, default='')
    address = CompanyAddressSerializer()
    phone = serializers.CharField(max_length=50)
    email = serializers.EmailField()
    website = serializers.URLField(required=False, allow_blank=True, default='')
    certifications = CertificationSerializer(many=True, required=False, default=list)
    service_areas = serializers.ListField(child=serializers.CharField(max_length=100), required=False, default=list)
    specialties = serializers.ListField(child=serializers.CharField(max_length=100), required=False, default=list)


def user_access_flags(user):
    """Derived access flags for the signed-in user"""
    is_staff_role = user.role in STAFF_ROLES
    return {
        'is_admin': user.role == UserRole.ADMIN,
        'can_manage_products': is_staff_role or user.has_app_permission(Permission.MANAGE_PRODUCTS),
        'can_manage_quotes': is_staff_role or user.has_app_permission(Permission.MANAGE_QUOTES),
        'can_manage_media': is_staff_role or user.has_app_permission(Permission.MANAGE_MEDIA),
        'can_view_analytics': is_staff_role or user.has_app_permission(Permission.VIEW_ANALYTICS),
        'can_manage_users': user.has_app_permission(Permission.MANAGE_USERS),
    }
