"""
URL routing for user API endpoints.
"""
from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('users/', views.UserListCreateView.as_view(), name='user-list'),
    path('users/me/', views.MeView.as_view(), name='user-me'),
    path('users/<int:pk>/', views.UserDetailView.as_view(), name='user-detail'),
    path('users/<int:pk>/status/', views.UserStatusView.as_view(), name='user-status'),
]
