from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.utils.validators import validate_username
from .models import User, Role
from .permissions import permissions_for


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150, validators=[validate_username])
    name = serializers.CharField(max_length=255)
    role = serializers.ChoiceField(choices=Role.choices)
    password = serializers.CharField(write_only=True, style={"input_type": "password"})
    password_confirmation = serializers.CharField(write_only=True, style={"input_type": "password"})

    def validate_username(self, value):
        if User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError("This username is already taken.")
        return value

    def validate(self, attrs):
        if attrs["password"] != attrs["password_confirmation"]:
            raise serializers.ValidationError({"password_confirmation": "Passwords do not match."})
        validate_password(attrs["password"])
        return attrs


class UserSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'role', 'permissions']

    def get_permissions(self, obj):
        return sorted(str(action) for action in permissions_for(obj))


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference embedded in work orders and log entries."""

    class Meta:
        model = User
        fields = ['id', 'username', 'name']
