from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Department, AuditLog


def _validate_role_department(attrs, instance=None):
    role = attrs.get('role', getattr(instance, 'role', User.ROLE_USER))
    department = attrs.get('department', getattr(instance, 'department', None))
    if role != User.ROLE_SUPERADMIN and department is None:
        raise serializers.ValidationError({'department': 'Department is required for this role'})


class DepartmentSerializer(serializers.ModelSerializer):
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = ['id', 'name', 'description', 'user_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_user_count(self, obj):
        annotated = getattr(obj, 'user_count', None)
        if annotated is not None:
            return annotated
        return obj.users.count()


class UserSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source='department.name', read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'display_name', 'first_name', 'last_name', 'phone',
                  'role', 'department', 'department_name', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_email(self, value):
        queryset = User.objects.filter(email__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if value and queryset.exists():
            raise serializers.ValidationError('A user with this email already exists')
        return value

    def validate(self, attrs):
        _validate_role_department(attrs, self.instance)
        return attrs


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    email = serializers.EmailField()

    class Meta:
        model = User
        fields = ['username', 'email', 'name', 'password', 'password_confirm', 'first_name', 'last_name',
                  'phone', 'role', 'department']

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        _validate_role_department(attrs)
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'created_at']
