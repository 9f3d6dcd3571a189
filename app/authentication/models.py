"""
Account model.

Every order, enrollment and CPF record points at a User. Accounts are
identified by email; the display name is forwarded to payment providers as
the payer name. A CPF belongs to at most one account.
"""

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models


class UserManager(BaseUserManager):
    """Email-keyed replacement for Django's username-based manager."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("An email address is required")

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            # Password-less accounts cannot log in until one is set
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Staff account for the admin (manual payment confirmation)."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields["is_staff"] is not True or extra_fields["is_superuser"] is not True:
            raise ValueError("Superusers need is_staff=True and is_superuser=True")

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Student or staff account.

    Usage:
        user = User.objects.create_user(email="ana@example.com", full_name="Ana Souza")
    """

    email = models.EmailField(unique=True, max_length=254, help_text="Login identifier")
    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Sent to payment providers as the payer name",
    )
    tax_id = models.CharField(
        max_length=11,
        unique=True,
        null=True,
        blank=True,
        help_text="CPF claimed through an external checkout; one account per CPF",
    )
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False, help_text="Can use the admin site")
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        if self.full_name:
            return self.full_name.split()[0]
        return self.email.split("@")[0]
