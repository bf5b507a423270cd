from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User, Session, Tag, Question, QuestionTag, Answer, Vote, Notification


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("id", "email", "username", "role", "is_active", "created_at")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("email", "username")
    ordering = ("-created_at",)
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("Forum", {"fields": ("role",)}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "username", "password1", "password2", "role")}),
    )


class QuestionTagInline(admin.TabularInline):
    model = QuestionTag
    extra = 0


class AnswerInline(admin.TabularInline):
    model = Answer
    extra = 0
    fields = ("author", "content", "is_accepted", "created_at")
    readonly_fields = ("is_accepted", "created_at")


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "author", "created_at")
    search_fields = ("title", "description")
    inlines = [QuestionTagInline, AnswerInline]


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    list_display = ("id", "voter", "question", "answer", "value", "created_at")
    list_filter = ("value",)


admin.site.register(Session)
admin.site.register(Tag)
admin.site.register(Answer)
admin.site.register(Notification)
