from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    health, RegisterView, LoginView, LogoutView, MeView, QuestionViewSet, AnswerDetailView,
    AnswerVoteView, AcceptAnswerView, SearchQuestionsView, TagViewSet, NotificationListView,
    NotificationReadView, NotificationReadAllView,
)

app_name = "qa"

router = DefaultRouter(trailing_slash=False)
router.register(r'questions', QuestionViewSet, basename='questions')
router.register(r'tags', TagViewSet, basename='tags')

urlpatterns = [
    path('health/', health, name='Health'),
    path('register', RegisterView.as_view(), name='register'),
    path('login', LoginView.as_view(), name='login'),
    path('logout', LogoutView.as_view(), name='logout'),
    path('me', MeView.as_view(), name='me'),
    path('questions/<int:question_id>/answers/<int:answer_id>', AnswerDetailView.as_view(), name='answer-detail'),
    path('questions/<int:question_id>/answers/<int:answer_id>/vote', AnswerVoteView.as_view(), name='answer-vote'),
    path('questions/<int:question_id>/answers/<int:answer_id>/accept', AcceptAnswerView.as_view(),
         name='answer-accept'),
    path('search/questions', SearchQuestionsView.as_view(), name='search-questions'),
    path('notifications', NotificationListView.as_view(), name='notifications'),
    path('notifications/read-all', NotificationReadAllView.as_view(), name='notifications-read-all'),
    path('notifications/<int:notification_id>/read', NotificationReadView.as_view(), name='notification-read'),
    path('', include(router.urls)),
]
