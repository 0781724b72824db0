import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import IntegrityError
from django.db.models import Count
from django.shortcuts import get_object_or_404
from .models import Department, AuditLog
from .permissions import is_superadmin, user_capabilities
from .serializers import (
    UserSerializer, UserCreateSerializer,
    DepartmentSerializer, AuditLogSerializer
)
from .utils import create_audit_log

User = get_user_model()

logger = logging.getLogger('backend.core')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['department'] = user.department_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with role capabilities"""
    user_data = UserSerializer(request.user).data
    user_data.update(user_capabilities(request.user))
    return Response(user_data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List all users or create a new user (superadmin only)"""
    if not is_superadmin(request.user):
        logger.warning(f"User {request.user.username} attempted to access user management")
        return Response({'error': 'Only administrators can manage users'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        users = User.objects.select_related('department').order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        department = request.query_params.get('department')
        if department:
            users = users.filter(department_id=department)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)

    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        logger.info(f"User {user.username} ({user.role}) created by {request.user.username}")
        create_audit_log(
            request=request,
            action='create',
            model_name='User',
            object_id=user.id,
            object_name=user.username,
            changes={'role': user.role, 'department': user.department_id},
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    logger.warning(f"User creation validation failed: {serializer.errors}")
    return Response({'error': 'Invalid user data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """Retrieve, update or delete a user (superadmin only)"""
    if not is_superadmin(request.user):
        return Response({'error': 'Only administrators can manage users'}, status=status.HTTP_403_FORBIDDEN)

    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"User {pk} updated by {request.user.username}")
            create_audit_log(
                request=request,
                action='update',
                model_name='User',
                object_id=user.id,
                object_name=user.username,
                changes={k: str(v) for k, v in serializer.validated_data.items()},
            )
            return Response(serializer.data)
        return Response({'error': 'Invalid user data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        username = user.username
        user.delete()
        logger.info(f"User {username} deleted by {request.user.username}")
        create_audit_log(request=request, action='delete', model_name='User', object_id=pk, object_name=username)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Department views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def department_list_create(request):
    """List departments with user counts, or create one (superadmin only)"""
    if request.method == 'GET':
        departments = Department.objects.annotate(user_count=Count('users')).order_by('name')
        serializer = DepartmentSerializer(departments, many=True)
        return Response(serializer.data)

    if not is_superadmin(request.user):
        return Response({'error': 'Only administrators can create departments'}, status=status.HTTP_403_FORBIDDEN)

    serializer = DepartmentSerializer(data=request.data)
    if serializer.is_valid():
        department = serializer.save()
        logger.info(f"Department '{department.name}' created by {request.user.username}")
        create_audit_log(request=request, action='create', model_name='Department',
                         object_id=department.id, object_name=department.name)
        return Response(DepartmentSerializer(department).data, status=status.HTTP_201_CREATED)
    return Response({'error': 'Invalid department data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def department_detail(request, pk):
    """Retrieve, update or delete a department"""
    department = get_object_or_404(Department, pk=pk)

    if request.method == 'GET':
        return Response(DepartmentSerializer(department).data)

    if not is_superadmin(request.user):
        return Response({'error': 'Only administrators can modify departments'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = DepartmentSerializer(department, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Department {pk} updated by {request.user.username}")
            return Response(serializer.data)
        return Response({'error': 'Invalid department data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    user_count = department.users.count()
    if user_count:
        logger.warning(f"Refused to delete department {pk}: {user_count} users assigned")
        return Response(
            {'error': f'Cannot delete department with {user_count} assigned users'},
            status=status.HTTP_409_CONFLICT
        )
    try:
        name = department.name
        department.delete()
    except IntegrityError as e:
        logger.error(f"IntegrityError deleting department {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'Department is still referenced'}, status=status.HTTP_409_CONFLICT)
    logger.info(f"Department {name} deleted by {request.user.username}")
    create_audit_log(request=request, action='delete', model_name='Department', object_id=pk, object_name=name)
    return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    if not is_superadmin(request.user):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_superadmin(request.user) and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    """Liveness check"""
    return Response({'status': 'ok'})
