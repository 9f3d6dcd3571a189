import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(help_text="Course title", max_length=255)),
                (
                    "price_cents",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Price in smallest currency unit (0 for free courses)",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="brl",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "payment_gateway",
                    models.CharField(
                        choices=[
                            ("stripe", "Stripe"),
                            ("mercadopago", "Mercado Pago"),
                            ("hotmart", "Hotmart"),
                            ("kiwify", "Kiwify"),
                        ],
                        default="stripe",
                        help_text="Payment provider this course is sold through",
                        max_length=20,
                    ),
                ),
                (
                    "external_checkout_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Hosted checkout URL (Hotmart/Kiwify courses only)",
                        max_length=500,
                    ),
                ),
                (
                    "is_published",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether the course is visible and purchasable",
                    ),
                ),
            ],
            options={
                "verbose_name": "Course",
                "verbose_name_plural": "Courses",
                "ordering": ["title"],
            },
        ),
    ]
