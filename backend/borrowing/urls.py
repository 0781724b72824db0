from django.urls import path
from .views import (
    borrow_request_list_create, borrow_request_detail, borrow_request_overdue,
    borrow_request_approve, borrow_request_reject, borrow_request_complete, borrow_request_seed
)

urlpatterns = [
    path('borrow-requests/', borrow_request_list_create, name='borrow-request-list-create'),
    path('borrow-requests/overdue/', borrow_request_overdue, name='borrow-request-overdue'),
    path('borrow-requests/<int:pk>/', borrow_request_detail, name='borrow-request-detail'),
    path('borrow-requests/<int:pk>/approve/', borrow_request_approve, name='borrow-request-approve'),
    path('borrow-requests/<int:pk>/reject/', borrow_request_reject, name='borrow-request-reject'),
    path('borrow-requests/<int:pk>/complete/', borrow_request_complete, name='borrow-request-complete'),
    path('borrow-requests/<int:pk>/seed/', borrow_request_seed, name='borrow-request-seed'),
]
