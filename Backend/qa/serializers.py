from __future__ import annotations

from django.contrib.auth import authenticate, password_validation
from rest_framework import serializers

from .models import User, Tag, Question, Answer, Notification
from .services import DEFAULT_PAGE_SIZE, DIRECTIONS, MAX_PAGE_SIZE, answer_score
from .utils import format_time_ago


# PUBLIC_INTERFACE
class UserSerializer(serializers.ModelSerializer):
    """User serializer for public exposure (hide sensitive fields)."""

    class Meta:
        model = User
        fields = ["id", "username", "email", "role", "created_at"]
        read_only_fields = fields


# PUBLIC_INTERFACE
class RegisterSerializer(serializers.Serializer):
    """Serializer to register a new user."""
    username = serializers.CharField(min_length=3, max_length=32)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)

    def validate_password(self, value):
        password_validation.validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data["email"],
            username=validated_data["username"],
            password=validated_data["password"],
        )


# PUBLIC_INTERFACE
class LoginSerializer(serializers.Serializer):
    """Authenticate with email and password."""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        user = authenticate(email=attrs["email"], password=attrs["password"])
        if not user:
            raise serializers.ValidationError("Invalid credentials")
        if not user.is_active:
            raise serializers.ValidationError("Account is inactive")
        attrs["user"] = user
        return attrs


# PUBLIC_INTERFACE
class TagSerializer(serializers.ModelSerializer):
    """Tag model serializer."""

    class Meta:
        model = Tag
        fields = ["id", "name"]


class _TimeAgoMixin:
    def get_time(self, obj):
        return format_time_ago(obj.created_at)


# PUBLIC_INTERFACE
class AnswerSerializer(_TimeAgoMixin, serializers.ModelSerializer):
    """Answer with author handle, net score and relative age."""
    author = serializers.CharField(source="author.username", read_only=True)
    author_id = serializers.IntegerField(read_only=True)
    question_id = serializers.IntegerField(read_only=True)
    score = serializers.SerializerMethodField()
    time = serializers.SerializerMethodField()

    class Meta:
        model = Answer
        fields = ["id", "question_id", "content", "author", "author_id", "is_accepted", "score",
                  "created_at", "time"]
        read_only_fields = fields

    def get_score(self, obj):
        score = getattr(obj, "score", None)
        if score is None:
            score = answer_score(obj.pk)
        return score


# PUBLIC_INTERFACE
class QuestionSerializer(_TimeAgoMixin, serializers.ModelSerializer):
    """
    Question as returned by the listing and detail endpoints.

    Expects instances from services.annotated_questions() (score,
    answer_count and prefetched tags/answers). Answers are rendered only when
    the `include_answers` context flag is true.
    """
    author = serializers.CharField(source="author.username", read_only=True)
    author_id = serializers.IntegerField(read_only=True)
    tags = serializers.SerializerMethodField()
    score = serializers.IntegerField(read_only=True)
    answer_count = serializers.IntegerField(read_only=True)
    time = serializers.SerializerMethodField()

    class Meta:
        model = Question
        fields = ["id", "title", "description", "author", "author_id", "tags", "score", "answer_count",
                  "created_at", "updated_at", "time"]
        read_only_fields = fields

    def get_tags(self, obj):
        return [tag.name for tag in obj.tags.all()]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if self.context.get("include_answers", True):
            data["answers"] = AnswerSerializer(instance.answers.all(), many=True).data
        return data


# PUBLIC_INTERFACE
class QuestionWriteSerializer(serializers.Serializer):
    """Input for creating or editing a question."""
    title = serializers.CharField(min_length=3, max_length=256)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    tags = serializers.ListField(child=serializers.CharField(max_length=32), required=False, max_length=10)

    def to_internal_value(self, data):
        # The client historically sends the question text as "body".
        if hasattr(data, "get") and "description" not in data and "body" in data:
            data = {**data, "description": data.get("body")}
        return super().to_internal_value(data)


# PUBLIC_INTERFACE
class AnswerWriteSerializer(serializers.Serializer):
    """Input for creating or editing an answer."""
    content = serializers.CharField()


# PUBLIC_INTERFACE
class VoteSerializer(serializers.Serializer):
    """Up or down vote on a question or answer."""
    direction = serializers.ChoiceField(choices=sorted(DIRECTIONS))


# PUBLIC_INTERFACE
class SearchSerializer(serializers.Serializer):
    query = serializers.CharField(max_length=256)
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=MAX_PAGE_SIZE, default=DEFAULT_PAGE_SIZE)


# PUBLIC_INTERFACE
class NotificationSerializer(serializers.ModelSerializer):
    """Notification serializer."""

    class Meta:
        model = Notification
        fields = ["id", "type", "content", "is_read", "created_at"]
        read_only_fields = fields
