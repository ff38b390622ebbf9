from django.urls import path
from . import views

urlpatterns = [
    path('start/', views.start_game, name='mines_start'),
    path('reveal/', views.reveal_cell, name='mines_reveal'),
    path('cashout/', views.cash_out, name='mines_cashout'),
    path('round/', views.current_round, name='mines_round'),
    path('history/', views.history, name='mines_history'),

    # Admin
    path('admin/rounds/', views.RecentRoundsView.as_view(), name='mines_recent_rounds'),
    path('admin/users/<int:user_id>/hack-mode/', views.hack_mode, name='mines_hack_mode'),
]
