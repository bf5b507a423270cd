import json
import logging
from pathlib import Path

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand, CommandError
from django.core.management.color import no_style
from django.db import IntegrityError, connection, transaction
from django.utils.dateparse import parse_datetime

from qa.models import Answer, Notification, Question, QuestionTag, Tag, User, Vote

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def seed_password(raw):
    """Raw bcrypt hashes are kept as-is under Django's `bcrypt$` scheme; anything else is hashed."""
    if raw and raw.startswith(BCRYPT_PREFIXES):
        return f"bcrypt${raw}"
    return make_password(raw or None)


def _timestamp(row):
    value = row.get("created_at")
    return parse_datetime(value) if value else None


class Command(BaseCommand):
    help = "Load users, questions, answers, tags, votes and notifications from a JSON seed file."

    def add_arguments(self, parser):
        parser.add_argument("path", type=Path, help="Seed JSON document.")

    def handle(self, *args, **options):
        path = options["path"]
        try:
            seed = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CommandError(f"Cannot read seed file {path}: {exc}") from exc

        try:
            with transaction.atomic():
                counts = {
                    "users": self._load(User, seed.get("users", []), self._user),
                    "tags": self._load(Tag, seed.get("tags", []), lambda row: {"name": row["name"]}),
                    "questions": self._load(Question, seed.get("questions", []), self._question),
                    "answers": self._load(Answer, seed.get("answers", []), self._answer),
                    "question_tags": self._load_question_tags(seed.get("question_tags", [])),
                    "votes": self._load(Vote, seed.get("votes", []), self._vote),
                    "notifications": self._load(Notification, seed.get("notifications", []), self._notification),
                }
                self._reset_sequences()
        except (IntegrityError, KeyError) as exc:
            raise CommandError(f"Seeding failed: {exc}") from exc

        for name, inserted in counts.items():
            self.stdout.write(f"{name}: {inserted} inserted")
        self.stdout.write(self.style.SUCCESS("Seed data loaded"))

    def _load(self, model, rows, build):
        inserted = 0
        for row in rows:
            if model.objects.filter(pk=row["id"]).exists():
                continue
            fields = {key: value for key, value in build(row).items() if value is not None}
            model.objects.create(id=row["id"], **fields)
            inserted += 1
        logger.debug("Seeded %s %s rows", inserted, model.__name__)
        return inserted

    def _load_question_tags(self, rows):
        inserted = 0
        for row in rows:
            _, created = QuestionTag.objects.get_or_create(question_id=row["question_id"], tag_id=row["tag_id"])
            inserted += int(created)
        return inserted

    def _reset_sequences(self):
        statements = connection.ops.sequence_reset_sql(
            no_style(), [User, Tag, Question, Answer, QuestionTag, Vote, Notification],
        )
        with connection.cursor() as cursor:
            for sql in statements:
                cursor.execute(sql)

    @staticmethod
    def _user(row):
        role = row.get("role") or User.ROLE_USER
        return {
            "username": row["username"],
            "email": row["email"],
            "password": seed_password(row.get("password")),
            "role": role,
            "is_staff": role == User.ROLE_ADMIN,
        }

    @staticmethod
    def _question(row):
        # Legacy upvotes/downvotes columns are ignored; scores come from votes.
        return {
            "author_id": row["user_id"],
            "title": row["title"],
            "description": row.get("description") or "",
            "created_at": _timestamp(row),
        }

    @staticmethod
    def _answer(row):
        return {
            "question_id": row["question_id"],
            "author_id": row["user_id"],
            "content": row["content"],
            "is_accepted": bool(row.get("is_accepted")),
            "created_at": _timestamp(row),
        }

    @staticmethod
    def _vote(row):
        return {
            "voter_id": row["user_id"],
            "question_id": row.get("question_id"),
            "answer_id": row.get("answer_id"),
            "value": row["value"],
        }

    @staticmethod
    def _notification(row):
        return {
            "recipient_id": row["recipient_id"],
            "type": row["type"],
            "content": row.get("content") or "",
            "is_read": bool(row.get("is_read")),
        }
