"""
Domain rules for questions, answers, tags and votes.

Every rule that touches more than one row runs inside a single
``transaction.atomic()`` block; vote casting and answer acceptance also lock
the row they hinge on with ``select_for_update()``. The unique constraints in
``models.py`` remain the last line against concurrent double inserts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Exists, IntegerField, OuterRef, Prefetch, Q, Subquery, Sum, Value
from django.db.models.functions import Coalesce

from .exceptions import Conflict, Forbidden, InvalidRequest, NotFound
from .models import Answer, Notification, Question, QuestionTag, Tag, Vote
from .utils import notify

logger = logging.getLogger(__name__)

FILTER_TOP_VOTED = "topvoted"
FILTER_NEWEST = "newest"
FILTER_UNANSWERED = "unanswered"
LISTING_FILTERS = (FILTER_TOP_VOTED, FILTER_NEWEST, FILTER_UNANSWERED)

TAG_MATCH_ANY = "any"
TAG_MATCH_ALL = "all"
TAG_MATCH_MODES = (TAG_MATCH_ANY, TAG_MATCH_ALL)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10
# LIMIT/OFFSET are signed 64-bit in the database.
MAX_OFFSET = 2 ** 63 - 1 - MAX_PAGE_SIZE
TAG_NAME_MAX_LENGTH = Tag._meta.get_field("name").max_length

DIRECTIONS = {"up": Vote.UP, "down": Vote.DOWN}

VOTE_CREATE = "create"
VOTE_DELETE = "delete"
VOTE_UPDATE = "update"


@dataclass
class VoteResult:
    score: int
    # The voter's vote after the operation; None once toggled off.
    value: Optional[int]


@dataclass
class QuestionPage:
    items: List[Question]
    limit: int
    offset: int
    # True when the page came back full; a heuristic, not a count.
    has_more: bool


# ---------------------------------------------------------------------------
# Query building blocks
# ---------------------------------------------------------------------------

def _score(target_field: str):
    """Net vote score of the outer row, 0 when nobody voted."""
    totals = (
        Vote.objects.filter(**{target_field: OuterRef("pk")})
        .order_by()
        .values(target_field)
        .annotate(total=Sum("value"))
        .values("total")
    )
    return Coalesce(Subquery(totals, output_field=IntegerField()), Value(0))


def _answer_count():
    counts = (
        Answer.objects.filter(question=OuterRef("pk"))
        .order_by()
        .values("question")
        .annotate(n=Count("pk"))
        .values("n")
    )
    return Coalesce(Subquery(counts, output_field=IntegerField()), Value(0))


def annotated_answers():
    """Answers with `score`, accepted first, then best scored, then oldest."""
    return (
        Answer.objects.select_related("author")
        .annotate(score=_score("answer"))
        .order_by("-is_accepted", "-score", "created_at", "pk")
    )


def annotated_questions(include_answers=True):
    qs = Question.objects.select_related("author").annotate(score=_score("question"), answer_count=_answer_count())
    prefetches = [Prefetch("tags", queryset=Tag.objects.order_by("name"))]
    if include_answers:
        prefetches.append(Prefetch("answers", queryset=annotated_answers()))
    return qs.prefetch_related(*prefetches)


def question_score(question_id) -> int:
    return _total(Vote.objects.filter(question_id=question_id))


def answer_score(answer_id) -> int:
    return _total(Vote.objects.filter(answer_id=answer_id))


def _total(votes) -> int:
    return votes.aggregate(total=Coalesce(Sum("value"), 0, output_field=IntegerField()))["total"]


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_int(value, message, minimum, maximum=None) -> int:
    if isinstance(value, bool):
        raise InvalidRequest(message)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(message)
    if number < minimum or (maximum is not None and number > maximum):
        raise InvalidRequest(message)
    return number


def clean_tag_names(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and collapse repeats while keeping request order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = [tags]
    names = []
    for raw in tags:
        if not isinstance(raw, str):
            raise InvalidRequest("Tags must be strings")
        name = raw.strip()
        if not name or name in names:
            continue
        if len(name) > TAG_NAME_MAX_LENGTH:
            raise InvalidRequest(f"Tag '{name[:TAG_NAME_MAX_LENGTH]}...' exceeds {TAG_NAME_MAX_LENGTH} characters")
        names.append(name)
    return names


def parse_direction(direction) -> int:
    if not direction:
        raise InvalidRequest("Vote direction is required")
    try:
        return DIRECTIONS[str(direction).lower()]
    except KeyError:
        raise InvalidRequest("Direction must be one of: up, down")


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------

def resolve_vote(existing: Optional[int], requested: int):
    """
    PUBLIC_INTERFACE
    Vote toggle transition table. Returns ``(action, resulting_value)``:

    - no vote yet                  -> create the requested vote
    - same direction again         -> delete it (toggle off)
    - opposite direction           -> flip the existing vote
    """
    if requested not in (Vote.UP, Vote.DOWN):
        raise InvalidRequest("Vote value must be +1 or -1")
    if existing is None:
        return VOTE_CREATE, requested
    if existing == requested:
        return VOTE_DELETE, None
    return VOTE_UPDATE, requested


def _require_voter(voter):
    if voter is None or not getattr(voter, "is_authenticated", False):
        raise InvalidRequest("Voter is required")


def _apply_vote(voter, target_field: str, target, value: int) -> VoteResult:
    lookup = {target_field: target}
    existing = Vote.objects.filter(voter=voter, **lookup).first()
    action, new_value = resolve_vote(existing.value if existing else None, value)
    if action == VOTE_CREATE:
        try:
            with transaction.atomic():
                Vote.objects.create(voter=voter, value=new_value, **lookup)
        except IntegrityError as exc:
            raise Conflict("A vote for this target is already being recorded") from exc
    elif action == VOTE_DELETE:
        existing.delete()
    else:
        existing.value = new_value
        existing.save(update_fields=["value"])

    score = _total(Vote.objects.filter(**lookup))
    logger.info("Vote %s on %s %s by user %s, score now %s", action, target_field, target.pk, voter.pk, score)
    return VoteResult(score=score, value=new_value)


def vote_on_question(voter, question_id, direction) -> VoteResult:
    _require_voter(voter)
    value = parse_direction(direction)
    with transaction.atomic():
        question = Question.objects.select_for_update().filter(pk=question_id).first()
        if question is None:
            raise NotFound("Question not found")
        return _apply_vote(voter, "question", question, value)


def vote_on_answer(voter, question_id, answer_id, direction) -> VoteResult:
    _require_voter(voter)
    value = parse_direction(direction)
    with transaction.atomic():
        answer = Answer.objects.select_for_update().filter(pk=answer_id, question_id=question_id).first()
        if answer is None:
            raise NotFound("Answer not found")
        return _apply_vote(voter, "answer", answer, value)


def cast_vote(voter, target, direction) -> VoteResult:
    """Vote on a Question or Answer instance."""
    if isinstance(target, Question):
        return vote_on_question(voter, target.pk, direction)
    if isinstance(target, Answer):
        return vote_on_answer(voter, target.question_id, target.pk, direction)
    raise NotFound("Vote target not found")


# ---------------------------------------------------------------------------
# Answer acceptance
# ---------------------------------------------------------------------------

def accept_answer(question_id, answer_id, actor) -> Answer:
    """
    PUBLIC_INTERFACE
    Make `answer_id` the single accepted answer of `question_id`.

    Only the question's author may accept, and the answer must belong to the
    question. All answers are cleared first, so at no point are two accepted.
    """
    with transaction.atomic():
        question = Question.objects.select_for_update().filter(pk=question_id).first()
        if question is None:
            raise NotFound("Question not found")
        if actor is None or question.author_id != actor.pk:
            raise Forbidden("Only the question author can accept an answer")
        answer = Answer.objects.select_related("author").filter(pk=answer_id, question=question).first()
        if answer is None:
            raise NotFound("Answer not found for this question")

        question.answers.filter(is_accepted=True).update(is_accepted=False)
        Answer.objects.filter(pk=answer.pk).update(is_accepted=True)
        answer.is_accepted = True

        if answer.author_id != actor.pk:
            notify(answer.author, Notification.TYPE_ANSWER_ACCEPTED,
                   f"Your answer on '{question.title}' was accepted")
    logger.info("Answer %s accepted on question %s by user %s", answer.pk, question.pk, actor.pk)
    return answer


# ---------------------------------------------------------------------------
# Listing & lookup
# ---------------------------------------------------------------------------

def list_questions(filter_, tags=None, limit=DEFAULT_PAGE_SIZE, offset=0, match=TAG_MATCH_ANY) -> QuestionPage:
    """
    PUBLIC_INTERFACE
    One page of questions for `filter_` (topvoted, newest, unanswered),
    optionally restricted to questions carrying any (or all) of `tags`.
    """
    if filter_ not in LISTING_FILTERS:
        raise InvalidRequest("Filter must be one of: topvoted, newest, unanswered")
    limit = _parse_int(limit, f"Limit must be a number between 1 and {MAX_PAGE_SIZE}", 1, MAX_PAGE_SIZE)
    offset = _parse_int(offset, f"Skip must be a number between 0 and {MAX_OFFSET}", 0, MAX_OFFSET)
    match = match or TAG_MATCH_ANY
    if match not in TAG_MATCH_MODES:
        raise InvalidRequest("Tag match must be one of: any, all")
    names = clean_tag_names(tags)

    qs = annotated_questions(include_answers=True)
    if names:
        if match == TAG_MATCH_ALL:
            for name in names:
                qs = qs.filter(Exists(QuestionTag.objects.filter(question=OuterRef("pk"), tag__name=name)))
        else:
            qs = qs.filter(Exists(QuestionTag.objects.filter(question=OuterRef("pk"), tag__name__in=names)))
    if filter_ == FILTER_UNANSWERED:
        qs = qs.filter(~Exists(Answer.objects.filter(question=OuterRef("pk"))))

    if filter_ == FILTER_TOP_VOTED:
        qs = qs.order_by("-score", "-created_at", "-pk")
    else:
        qs = qs.order_by("-created_at", "-pk")

    items = list(qs[offset:offset + limit])
    return QuestionPage(items=items, limit=limit, offset=offset, has_more=len(items) == limit)


def get_question(question_id, include_answers=True) -> Question:
    question = annotated_questions(include_answers).filter(pk=question_id).first()
    if question is None:
        raise NotFound("Question not found")
    return question


def search_questions(query, page=1, limit=DEFAULT_PAGE_SIZE) -> QuestionPage:
    text = str(query).strip() if query is not None else ""
    if not text:
        raise InvalidRequest("Search query is required")
    page = _parse_int(page, "Page must be a positive number", 1)
    limit = _parse_int(limit, f"Limit must be a number between 1 and {MAX_PAGE_SIZE}", 1, MAX_PAGE_SIZE)
    offset = (page - 1) * limit
    if offset > MAX_OFFSET:
        raise InvalidRequest("Page is out of range")

    qs = (
        annotated_questions(include_answers=False)
        .filter(Q(title__icontains=text) | Q(description__icontains=text))
        .order_by("-created_at", "-pk")
    )
    items = list(qs[offset:offset + limit])
    return QuestionPage(items=items, limit=limit, offset=offset, has_more=len(items) == limit)


# ---------------------------------------------------------------------------
# Creation & edits
# ---------------------------------------------------------------------------

def resolve_tags(names: Iterable[str]) -> List[Tag]:
    """Get-or-create each tag by exact name."""
    return [Tag.objects.get_or_create(name=name)[0] for name in names]


def create_question(author, title, description="", tags=None) -> Question:
    title = (title or "").strip()
    if len(title) < 3:
        raise InvalidRequest("Title must be at least 3 characters")
    names = clean_tag_names(tags)
    with transaction.atomic():
        question = Question.objects.create(author=author, title=title, description=description or "")
        if names:
            question.tags.set(resolve_tags(names))
    logger.info("Question %s created by user %s with tags %s", question.pk, author.pk, names)
    return question


def update_question(question: Question, title=None, description=None, tags=None) -> Question:
    update_fields = ["updated_at"]
    if title is not None:
        title = title.strip()
        if len(title) < 3:
            raise InvalidRequest("Title must be at least 3 characters")
        question.title = title
        update_fields.append("title")
    if description is not None:
        question.description = description
        update_fields.append("description")
    names = clean_tag_names(tags) if tags is not None else None
    with transaction.atomic():
        question.save(update_fields=update_fields)
        if names is not None:
            question.tags.set(resolve_tags(names))
    return question


def create_answer(author, question_id, content) -> Answer:
    if not content or not str(content).strip():
        raise InvalidRequest("Answer content is required")
    question = Question.objects.select_related("author").filter(pk=question_id).first()
    if question is None:
        raise NotFound("Question not found")
    with transaction.atomic():
        answer = Answer.objects.create(question=question, author=author, content=content)
        if question.author_id != author.pk:
            notify(question.author, Notification.TYPE_ANSWER_CREATED,
                   f"New answer on your question '{question.title}'")
    logger.info("Answer %s created on question %s by user %s", answer.pk, question.pk, author.pk)
    return answer


def update_answer(answer: Answer, content) -> Answer:
    if not content or not str(content).strip():
        raise InvalidRequest("Answer content is required")
    answer.content = content
    answer.save(update_fields=["content", "updated_at"])
    return answer
