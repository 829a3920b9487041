from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, AuditLog
from .utils import can_manage_kra


class UserSerializer(serializers.ModelSerializer):
    groups = serializers.SlugRelatedField(many=True, read_only=True, slug_field='name')
    can_manage_kra = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active', 'is_staff',
                  'is_superuser', 'groups', 'can_manage_kra', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_can_manage_kra(self, obj):
        return can_manage_kra(obj)


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)
    action_display = serializers.CharField(source='get_action_display', read_only=True)
    is_fiscal = serializers.BooleanField(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'username', 'action', 'action_display', 'is_fiscal', 'model_name', 'object_id',
                  'object_name', 'object_reference', 'changes', 'ip_address', 'created_at']
