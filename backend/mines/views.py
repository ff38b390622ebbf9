# mines/views.py
from __future__ import annotations

import logging
from functools import wraps

from rest_framework import generics, permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from .engine import get_engine
from .exceptions import MinesError
from .models import Round
from .serializers import (
    CashoutIn,
    CashoutOut,
    CurrentRoundOut,
    GameSessionSerializer,
    HackModeIn,
    RevealIn,
    RevealOut,
    RoundSerializer,
    StartGameIn,
    StartGameOut,
    history_limit,
)

logger = logging.getLogger(__name__)


def game_errors(view):
    """Map engine errors to ``{"error", "code"}`` responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except MinesError as e:
            return Response({"error": str(e), "code": e.code}, status=e.status_code)

    return wrapper


# =====================================================
# PLAYER
# =====================================================

@api_view(["POST"])
@permission_classes([IsAuthenticated])
@game_errors
def start_game(request):
    serializer = StartGameIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = get_engine().start_game(
        request.user,
        serializer.validated_data["bet_amount"],
        serializer.validated_data["mine_count"],
    )
    return Response(StartGameOut(result).data, status=201)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
@game_errors
def reveal_cell(request):
    serializer = RevealIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = get_engine().reveal(
        serializer.validated_data["session_id"],
        request.user,
        serializer.validated_data["position"],
    )
    return Response(RevealOut(result).data)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
@game_errors
def cash_out(request):
    serializer = CashoutIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = get_engine().cash_out(serializer.validated_data["session_id"], request.user)
    return Response(CashoutOut(result).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
@game_errors
def current_round(request):
    result = get_engine().get_current_round(is_admin=request.user.is_staff)
    return Response(CurrentRoundOut(result).data)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def history(request):
    limit = history_limit(request.query_params.get("limit"))
    sessions = get_engine().history(request.user, limit)
    return Response(GameSessionSerializer(sessions, many=True).data)


# =====================================================
# ADMIN
# =====================================================

@api_view(["POST"])
@permission_classes([IsAdminUser])
@game_errors
def hack_mode(request, user_id):
    serializer = HackModeIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    enabled = get_engine().set_hack_mode(user_id, serializer.validated_data["enabled"])
    logger.info("Admin %s set hack mode=%s for user %s", request.user.pk, enabled, user_id)
    return Response({"success": True, "hack_mode_enabled": enabled})


class RecentRoundsView(generics.ListAPIView):
    serializer_class = RoundSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        return Round.objects.order_by("-round_id")[:50]
