import django.core.validators
import django.db.models.deletion
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Round",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("round_id", models.CharField(max_length=20, unique=True)),
                ("mine_count", models.PositiveSmallIntegerField(default=3)),
                ("mine_positions", models.JSONField(default=list)),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("active", "Active"), ("ended", "Ended")], db_index=True, default="active", max_length=8)),
            ],
            options={
                "ordering": ["-round_id"],
            },
        ),
        migrations.CreateModel(
            name="GameSession",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("round_id", models.CharField(db_index=True, max_length=20)),
                ("bet_amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("mine_count", models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(24)])),
                ("mine_positions", models.JSONField(default=list)),
                ("revealed_cells", models.JSONField(default=list)),
                ("current_multiplier", models.DecimalField(decimal_places=8, default=Decimal("1.0"), max_digits=18)),
                ("status", models.CharField(choices=[("active", "Active"), ("won", "Won"), ("lost", "Lost")], db_index=True, default="active", max_length=8)),
                ("winnings", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("end_reason", models.CharField(blank=True, default="", max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="mines_sessions", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["round_id", "status"], name="mines_games_round_i_3f1a2c_idx"),
                    models.Index(fields=["owner", "created_at"], name="mines_games_owner_i_8d2e4b_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("owner", "round_id"), name="one_bet_per_round"),
                ],
            },
        ),
    ]
