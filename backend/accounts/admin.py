# accounts/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class MinexUserAdmin(UserAdmin):
    list_display = ("username", "email", "is_staff", "consecutive_wins", "hack_mode_enabled", "total_bets")
    list_filter = ("is_staff", "hack_mode_enabled")
    list_editable = ("hack_mode_enabled",)
    fieldsets = UserAdmin.fieldsets + (
        ("Game", {"fields": ("total_bets", "consecutive_wins", "hack_mode_enabled")}),
    )
