from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import MinLengthValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class UserManager(BaseUserManager):
    """Creates forum users keyed by email; the username is their public handle."""

    use_in_migrations = True

    def _create_user(self, email, username, password, **extra_fields):
        for label, value in (("Email", email), ("Username", username), ("Password", password)):
            if not value:
                raise ValueError(f"{label} must be set")
        user = self.model(email=self.normalize_email(email), username=username, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, username, password=None, **extra_fields):
        extra_fields = {"is_staff": False, "is_superuser": False, "role": User.ROLE_USER, **extra_fields}
        return self._create_user(email, username, password, **extra_fields)

    def create_superuser(self, email, username, password=None, **extra_fields):
        # Superusers always get admin rights, whatever role is passed.
        extra_fields = {"role": User.ROLE_ADMIN, **extra_fields, "is_staff": True, "is_superuser": True}
        return self._create_user(email, username, password, **extra_fields)


class User(AbstractUser):
    """Forum user. Logs in with email; username is the public handle."""
    ROLE_USER = "user"
    ROLE_MODERATOR = "moderator"
    ROLE_ADMIN = "admin"
    ROLE_CHOICES = (
        (ROLE_USER, "User"),
        (ROLE_MODERATOR, "Moderator"),
        (ROLE_ADMIN, "Admin"),
    )

    email = models.EmailField(unique=True)
    # Username remains from AbstractUser and unique
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    REQUIRED_FIELDS = ["username"]
    USERNAME_FIELD = "email"

    @property
    def is_moderator(self) -> bool:
        return self.is_staff or self.role in (self.ROLE_MODERATOR, self.ROLE_ADMIN)

    def __str__(self):
        return self.username or self.email


class Session(models.Model):
    """Bearer token issued at login. Expired or revoked rows no longer authenticate."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="sessions")
    token = models.CharField(max_length=255, unique=True)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    revoked = models.BooleanField(default=False)

    def __str__(self):
        return f"Session {self.pk} for user {self.user_id}"


class Tag(models.Model):
    # Case-sensitive: "SQL" and "sql" are distinct tags.
    name = models.CharField(max_length=32, unique=True, validators=[MinLengthValidator(1)])

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Question(models.Model):
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="questions")
    title = models.CharField(max_length=256, validators=[MinLengthValidator(3)])
    description = models.TextField(blank=True, default="")
    tags = models.ManyToManyField(Tag, through="QuestionTag", related_name="questions")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title


class QuestionTag(models.Model):
    question = models.ForeignKey(Question, on_delete=models.CASCADE)
    tag = models.ForeignKey(Tag, on_delete=models.CASCADE)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["question", "tag"], name="unique_question_tag"),
        ]


class Answer(models.Model):
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="answers")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="answers")
    content = models.TextField(validators=[MinLengthValidator(1)])
    # Only changed through services.accept_answer
    is_accepted = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["question"],
                condition=Q(is_accepted=True),
                name="one_accepted_answer_per_question",
            ),
        ]

    def __str__(self):
        return f"Answer {self.pk} to question {self.question_id}"


class Vote(models.Model):
    """A +1/-1 vote by one user on exactly one question or answer."""
    UP = 1
    DOWN = -1

    voter = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="votes")
    question = models.ForeignKey(Question, on_delete=models.CASCADE, null=True, blank=True, related_name="votes")
    answer = models.ForeignKey(Answer, on_delete=models.CASCADE, null=True, blank=True, related_name="votes")
    value = models.SmallIntegerField(choices=((UP, "Up"), (DOWN, "Down")))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(question__isnull=False, answer__isnull=True)
                    | Q(question__isnull=True, answer__isnull=False)
                ),
                name="vote_exactly_one_target",
            ),
            models.CheckConstraint(condition=Q(value__in=[1, -1]), name="vote_value_is_unit"),
            models.UniqueConstraint(
                fields=["voter", "question"],
                condition=Q(question__isnull=False),
                name="unique_vote_per_user_question",
            ),
            models.UniqueConstraint(
                fields=["voter", "answer"],
                condition=Q(answer__isnull=False),
                name="unique_vote_per_user_answer",
            ),
        ]


class Notification(models.Model):
    """In-app notifications."""
    TYPE_ANSWER_CREATED = "answer_created"
    TYPE_ANSWER_ACCEPTED = "answer_accepted"
    TYPE_SYSTEM = "system"
    TYPES = (
        (TYPE_ANSWER_CREATED, "Answer Created"),
        (TYPE_ANSWER_ACCEPTED, "Answer Accepted"),
        (TYPE_SYSTEM, "System"),
    )
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    type = models.CharField(max_length=64, choices=TYPES)
    content = models.TextField(blank=True, default="")
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
