"""
Django Admin configuration for users.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['id', 'username', 'email', 'role', 'margin_percent', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'date_joined']
    search_fields = ['username', 'email', 'phone', 'first_name', 'last_name']
    ordering = ['-date_joined']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Order desk', {'fields': ('role', 'phone', 'address', 'gst_number', 'margin_percent')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Order desk', {'fields': ('role', 'phone', 'margin_percent')}),
    )
