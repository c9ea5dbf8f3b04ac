import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ORDER_STATUS_CHOICES = [
    ("PENDING", "Pending"),
    ("APPROVED", "Approved"),
    ("PREPARING", "Preparing"),
    ("READY", "Ready"),
    ("DELIVERED", "Delivered"),
    ("REJECTED", "Rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "sequence",
                    models.PositiveBigIntegerField(
                        editable=False, help_text="Insertion sequence, source of the order number", unique=True
                    ),
                ),
                (
                    "order_number",
                    models.CharField(
                        editable=False, help_text="Human readable order number (auto-generated)", max_length=50, unique=True
                    ),
                ),
                ("department_id", models.UUIDField(help_text="Requesting department")),
                (
                    "warehouse_id",
                    models.UUIDField(
                        blank=True, help_text="Warehouse the order is routed to (set at creation or approval)", null=True
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUS_CHOICES,
                        default="PENDING",
                        help_text="Current order status in the lifecycle",
                        max_length=20,
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1)),
                ("notes", models.TextField(blank=True, help_text="Order notes")),
                ("rejection_reason", models.TextField(blank=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("prepared_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="approved_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        help_text="User who created the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "delivered_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="delivered_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "prepared_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="prepared_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "sequence"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
                    models.Index(fields=["department_id", "status"], name="order_department_status_idx"),
                    models.Index(fields=["warehouse_id", "status"], name="order_warehouse_status_idx"),
                    models.Index(fields=["created_at"], name="order_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("position", models.PositiveIntegerField(help_text="Display order within the order")),
                ("name", models.CharField(max_length=255)),
                (
                    "name_missing",
                    models.BooleanField(
                        default=False, help_text="Name was missing on input and replaced by a placeholder"
                    ),
                ),
                ("quantity", models.PositiveIntegerField()),
                (
                    "unit",
                    models.CharField(
                        choices=[
                            ("piece", "Piece"),
                            ("box", "Box"),
                            ("carton", "Carton"),
                            ("kg", "Kilogram"),
                            ("liter", "Liter"),
                        ],
                        default="piece",
                        max_length=10,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                (
                    "requested_quantity",
                    models.PositiveIntegerField(
                        blank=True, help_text="Originally requested quantity, recorded on preparation", null=True
                    ),
                ),
                ("is_unavailable", models.BooleanField(default=False)),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order this item belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "position"],
                "unique_together": {("order", "position")},
            },
        ),
        migrations.CreateModel(
            name="OrderHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.UUIDField(db_index=True)),
                ("order_number", models.CharField(max_length=50)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("status_changed", "Status changed"),
                            ("prepared", "Prepared"),
                            ("updated", "Updated"),
                            ("deleted", "Deleted"),
                        ],
                        max_length=20,
                    ),
                ),
                ("from_status", models.CharField(blank=True, choices=ORDER_STATUS_CHOICES, max_length=20)),
                ("to_status", models.CharField(choices=ORDER_STATUS_CHOICES, max_length=20)),
                ("actor_role", models.CharField(blank=True, max_length=20)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("note", models.TextField(blank=True)),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        help_text="User who performed the action",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_history",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "order history",
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["order_id", "timestamp"], name="history_order_time_idx"),
                    models.Index(fields=["action", "timestamp"], name="history_action_time_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PreparationLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.UUIDField(db_index=True)),
                ("order_number", models.CharField(max_length=50)),
                ("warehouse_id", models.UUIDField(blank=True, null=True)),
                ("item_name", models.CharField(max_length=255)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("ITEM_CHECKED", "Item checked"),
                            ("QUANTITY_ADJUSTED", "Quantity adjusted"),
                            ("ITEM_UNAVAILABLE", "Item unavailable"),
                            ("ITEM_AVAILABLE", "Item available"),
                            ("ORDER_COMPLETED", "Order completed"),
                        ],
                        max_length=20,
                    ),
                ),
                ("requested_qty", models.PositiveIntegerField(blank=True, null=True)),
                ("available_qty", models.PositiveIntegerField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "prepared_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="preparation_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["order_id", "timestamp"], name="preplog_order_time_idx"),
                    models.Index(fields=["action", "timestamp"], name="preplog_action_time_idx"),
                    models.Index(fields=["warehouse_id", "action"], name="preplog_warehouse_action_idx"),
                ],
            },
        ),
    ]
