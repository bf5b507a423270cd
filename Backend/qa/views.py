from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.middleware.csrf import get_token
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes as permission_classes_decorator
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .exceptions import Conflict, InvalidRequest, NotFound
from .models import Notification, Tag
from .permissions import IsOwnerOrModerator
from .serializers import (
    RegisterSerializer, LoginSerializer, UserSerializer, TagSerializer, QuestionSerializer,
    QuestionWriteSerializer, AnswerSerializer, AnswerWriteSerializer, NotificationSerializer, VoteSerializer,
    SearchSerializer,
)
from .utils import create_session, revoke_session

logger = logging.getLogger(__name__)

User = get_user_model()

TRUE_VALUES = ("1", "true", "yes", "on")


def _flag(value, default=True):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _valid_or_raise(serializer):
    if not serializer.is_valid():
        raise InvalidRequest("Invalid input", details=serializer.errors)
    return serializer.validated_data


def _page_response(page, **extra):
    data = QuestionSerializer(page.items, many=True, context={"include_answers": extra.pop("include_answers", True)}).data
    return Response({
        "success": True,
        "data": data,
        "count": len(data),
        **extra,
        "pagination": {"limit": page.limit, "skip": page.offset, "hasMore": page.has_more},
    })


@api_view(["GET"])
@permission_classes_decorator([AllowAny])
def health(request):
    """
    PUBLIC_INTERFACE
    Health check endpoint.
    Returns a simple JSON indicating the server is up.
    """
    return Response({"success": True, "message": "Server is up!", "timestamp": timezone.now().isoformat()})


class RegisterView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Register a new user
      description: Accepts username, email and password; rejects taken usernames/emails with 409.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        data = _valid_or_raise(serializer)
        if User.objects.filter(email__iexact=data["email"]).exists():
            raise Conflict("Email is already registered")
        if User.objects.filter(username__iexact=data["username"]).exists():
            raise Conflict("Username is already taken")
        try:
            with transaction.atomic():
                user = serializer.save()
        except IntegrityError as exc:
            raise Conflict("Username or email is already registered") from exc
        logger.info("User %s registered", user.pk)
        return Response({"success": True, "data": UserSerializer(user).data}, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Authenticate user and issue a session token
      description: The token is returned in the body and set as an HttpOnly cookie.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"success": False, "error_code": "AUTH_FAILED", "message": "Invalid credentials"},
                            status=status.HTTP_401_UNAUTHORIZED)
        user = serializer.validated_data["user"]
        session = create_session(user)
        User.objects.filter(pk=user.pk).update(last_login=timezone.now())
        logger.info("User %s logged in", user.pk)
        # Cookie-authenticated writes must echo this back in X-CSRFToken.
        get_token(request)
        response = Response({"success": True, "token": session.token, "user": UserSerializer(user).data})
        response.set_cookie(
            settings.AUTH_COOKIE_NAME,
            session.token,
            max_age=settings.SESSION_EXP_MINUTES * 60,
            httponly=True,
            secure=settings.AUTH_COOKIE_SECURE,
            samesite="Lax",
        )
        return response


class LogoutView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Logout current session
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        if request.auth is not None:
            revoke_session(request.auth)
        logger.info("User %s logged out", request.user.pk)
        response = Response({"success": True, "message": "Logged out"})
        response.delete_cookie(settings.AUTH_COOKIE_NAME)
        return response


class MeView(APIView):
    """
    PUBLIC_INTERFACE
    get:
      summary: Current user profile
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "data": UserSerializer(request.user).data})


class QuestionViewSet(viewsets.ModelViewSet):
    """
    PUBLIC_INTERFACE
    Question listing (topvoted/newest/unanswered, tag filter, skip/limit),
    detail, creation, owner/moderator edits, voting and answering.
    """
    serializer_class = QuestionSerializer
    permission_classes = [IsAuthenticatedOrReadOnly & IsOwnerOrModerator]
    http_method_names = ["get", "post", "put", "patch", "delete", "head", "options"]
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        return services.annotated_questions(include_answers=True)

    def list(self, request, *args, **kwargs):
        params = request.query_params
        tags = [name for raw in params.getlist("tags") for name in raw.split(",")]
        page = services.list_questions(
            params.get("filter", services.FILTER_NEWEST),
            tags=tags,
            limit=params.get("limit", services.DEFAULT_PAGE_SIZE),
            offset=params.get("skip", 0),
            match=params.get("match", services.TAG_MATCH_ANY),
        )
        return _page_response(page, filter=params.get("filter", services.FILTER_NEWEST),
                              tags=services.clean_tag_names(tags))

    def retrieve(self, request, *args, **kwargs):
        include_answers = _flag(request.query_params.get("includeAnswers"))
        question = services.get_question(kwargs["pk"], include_answers=include_answers)
        data = QuestionSerializer(question, context={"include_answers": include_answers}).data
        return Response({"success": True, "data": data})

    def create(self, request, *args, **kwargs):
        data = _valid_or_raise(QuestionWriteSerializer(data=request.data))
        question = services.create_question(
            request.user, data["title"], data.get("description", ""), data.get("tags"),
        )
        data = QuestionSerializer(services.get_question(question.pk)).data
        return Response({"success": True, "data": data}, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        question = self.get_object()
        data = _valid_or_raise(QuestionWriteSerializer(data=request.data, partial=kwargs.get("partial", False)))
        services.update_question(question, title=data.get("title"), description=data.get("description"),
                                 tags=data.get("tags"))
        data = QuestionSerializer(services.get_question(question.pk)).data
        return Response({"success": True, "data": data})

    def destroy(self, request, *args, **kwargs):
        question = self.get_object()
        logger.info("Question %s deleted by user %s", question.pk, request.user.pk)
        question.delete()
        return Response({"success": True, "message": "Question deleted"})

    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def vote(self, request, pk=None):
        data = _valid_or_raise(VoteSerializer(data=request.data))
        result = services.vote_on_question(request.user, pk, data["direction"])
        return Response({"success": True, "data": {"id": int(pk), "score": result.score, "vote": result.value}})

    @action(detail=True, methods=["post"], permission_classes=[IsAuthenticated])
    def answers(self, request, pk=None):
        data = _valid_or_raise(AnswerWriteSerializer(data=request.data))
        answer = services.create_answer(request.user, pk, data["content"])
        answer = services.annotated_answers().get(pk=answer.pk)
        return Response({"success": True, "data": AnswerSerializer(answer).data}, status=status.HTTP_201_CREATED)


class AnswerDetailView(APIView):
    """
    PUBLIC_INTERFACE
    put/patch:
      summary: Edit an answer (author or moderator)
    delete:
      summary: Delete an answer (author or moderator)
    """
    permission_classes = [IsAuthenticated & IsOwnerOrModerator]

    def get_object(self, question_id, answer_id):
        answer = services.annotated_answers().filter(pk=answer_id, question_id=question_id).first()
        if answer is None:
            raise NotFound("Answer not found")
        self.check_object_permissions(self.request, answer)
        return answer

    def put(self, request, question_id, answer_id):
        answer = self.get_object(question_id, answer_id)
        data = _valid_or_raise(AnswerWriteSerializer(data=request.data))
        services.update_answer(answer, data["content"])
        return Response({"success": True, "data": AnswerSerializer(answer).data})

    patch = put

    def delete(self, request, question_id, answer_id):
        answer = self.get_object(question_id, answer_id)
        logger.info("Answer %s deleted by user %s", answer.pk, request.user.pk)
        answer.delete()
        return Response({"success": True, "message": "Answer deleted"})


class AnswerVoteView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Vote up/down on an answer; repeating a direction removes the vote
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, question_id, answer_id):
        data = _valid_or_raise(VoteSerializer(data=request.data))
        result = services.vote_on_answer(request.user, question_id, answer_id, data["direction"])
        return Response({"success": True, "data": {"id": answer_id, "score": result.score, "vote": result.value}})


class AcceptAnswerView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Accept an answer (question author only); any previously accepted answer is cleared
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, question_id, answer_id):
        answer = services.accept_answer(question_id, answer_id, request.user)
        answer = services.annotated_answers().get(pk=answer.pk)
        return Response({"success": True, "data": AnswerSerializer(answer).data})


class SearchQuestionsView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Search questions by title/description substring
    """
    permission_classes = [AllowAny]

    def post(self, request):
        data = _valid_or_raise(SearchSerializer(data=request.data))
        page = services.search_questions(data["query"], page=data["page"], limit=data["limit"])
        return _page_response(page, include_answers=False, query=data["query"])


class TagViewSet(viewsets.ReadOnlyModelViewSet):
    """
    PUBLIC_INTERFACE
    All tags ordered by name, or one tag by id.
    """
    serializer_class = TagSerializer
    permission_classes = [AllowAny]
    queryset = Tag.objects.order_by("name")
    pagination_class = None

    def list(self, request, *args, **kwargs):
        data = self.get_serializer(self.get_queryset(), many=True).data
        return Response({"success": True, "data": data, "count": len(data)})

    def retrieve(self, request, *args, **kwargs):
        tag = Tag.objects.filter(pk=kwargs["pk"]).first()
        if tag is None:
            raise NotFound(f"No tag found with ID {kwargs['pk']}")
        return Response({"success": True, "data": self.get_serializer(tag).data})


class NotificationListView(APIView):
    """
    PUBLIC_INTERFACE
    get:
      summary: Current user's notifications, newest first (`?unread=true` for unread only)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Notification.objects.filter(recipient=request.user)
        if _flag(request.query_params.get("unread"), default=False):
            qs = qs.filter(is_read=False)
        data = NotificationSerializer(qs, many=True).data
        unread = Notification.objects.filter(recipient=request.user, is_read=False).count()
        return Response({"success": True, "data": data, "count": len(data), "unread": unread})


class NotificationReadView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Mark one notification as read
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, notification_id):
        notification = Notification.objects.filter(pk=notification_id, recipient=request.user).first()
        if notification is None:
            raise NotFound("Notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read"])
        return Response({"success": True, "data": NotificationSerializer(notification).data})


class NotificationReadAllView(APIView):
    """
    PUBLIC_INTERFACE
    post:
      summary: Mark all of the current user's notifications as read
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = Notification.objects.filter(recipient=request.user, is_read=False).update(is_read=True)
        return Response({"success": True, "data": {"updated": updated}})
