"""Question listing: filters, tag matching, ordering and pagination."""
from datetime import timedelta

import pytest

from qa import services
from qa.exceptions import InvalidRequest, NotFound

pytestmark = pytest.mark.django_db


def ids(page):
    return [question.pk for question in page.items]


class TestFilters:

    def test_newest_orders_by_creation_time(self, make_question):
        old = make_question(title="Old question", age=timedelta(days=3))
        new = make_question(title="New question", age=timedelta(minutes=5))
        mid = make_question(title="Mid question", age=timedelta(hours=5))

        assert ids(services.list_questions("newest")) == [new.pk, mid.pk, old.pk]

    def test_topvoted_orders_by_score_then_recency(self, make_question, make_user):
        low = make_question(title="Disliked", age=timedelta(hours=1))
        high = make_question(title="Popular", age=timedelta(hours=3))
        older_zero = make_question(title="Quiet older", age=timedelta(hours=4))
        newer_zero = make_question(title="Quiet newer", age=timedelta(hours=2))
        for _ in range(2):
            services.vote_on_question(make_user(), high.pk, "up")
        services.vote_on_question(make_user(), low.pk, "down")

        page = services.list_questions("topvoted")
        assert ids(page) == [high.pk, newer_zero.pk, older_zero.pk, low.pk]
        assert [q.score for q in page.items] == [2, 0, 0, -1]

    def test_unanswered_never_returns_answered_questions(self, make_question, make_answer):
        answered = make_question(title="Answered one")
        make_answer(answered)
        open_questions = [make_question(title=f"Open question {i}") for i in range(3)]

        page = services.list_questions("unanswered")
        assert answered.pk not in ids(page)
        assert set(ids(page)) == {q.pk for q in open_questions}
        assert all(q.answer_count == 0 for q in page.items)

    def test_unanswered_filter_applies_before_pagination(self, make_question, make_answer):
        for i in range(3):
            make_answer(make_question(title=f"Answered {i}", age=timedelta(minutes=i)))
        waiting = make_question(title="Still waiting", age=timedelta(days=1))

        assert ids(services.list_questions("unanswered", limit=1)) == [waiting.pk]

    def test_unknown_filter(self):
        with pytest.raises(InvalidRequest):
            services.list_questions("hottest")


class TestPagination:

    def test_limit_caps_page_size(self, make_question):
        for i in range(7):
            make_question(title=f"Question number {i}")

        page = services.list_questions("newest", limit=5)
        assert len(page.items) == 5
        assert page.has_more is True

        rest = services.list_questions("newest", limit=5, offset=5)
        assert len(rest.items) == 2
        assert rest.has_more is False
        assert not set(ids(page)) & set(ids(rest))

    def test_query_string_numbers_are_accepted(self, make_question):
        make_question()
        page = services.list_questions("newest", limit="3", offset="0")
        assert page.limit == 3 and page.offset == 0

    @pytest.mark.parametrize("limit,offset", [
        (0, 0), (101, 0), ("ten", 0), (10, -1), (10, "x"), (True, 0),
        (10, services.MAX_OFFSET + 1), (10, str(10 ** 30)),
    ])
    def test_out_of_bounds(self, limit, offset):
        with pytest.raises(InvalidRequest):
            services.list_questions("newest", limit=limit, offset=offset)

    def test_largest_offset_is_an_empty_page(self, make_question):
        make_question()
        page = services.list_questions("newest", limit=services.MAX_PAGE_SIZE, offset=services.MAX_OFFSET)
        assert page.items == []
        assert page.has_more is False

    def test_search_page_past_offset_range(self, make_question):
        make_question(title="Regex lookahead")
        with pytest.raises(InvalidRequest):
            services.search_questions("lookahead", page=10 ** 30, limit=10)


class TestTagFilter:

    def test_matching_tag_includes_question(self, author):
        question = services.create_question(author, "Join syntax", "", ["sql", "beginners"])

        assert ids(services.list_questions("newest", tags=["sql"])) == [question.pk]
        assert ids(services.list_questions("newest", tags=["css"])) == []

    def test_match_any_vs_match_all(self, author):
        both = services.create_question(author, "Styled tables", "", ["sql", "css"])
        only_sql = services.create_question(author, "Plain tables", "", ["sql"])

        any_page = services.list_questions("newest", tags=["sql", "css"])
        all_page = services.list_questions("newest", tags=["sql", "css"], match="all")

        assert set(ids(any_page)) == {both.pk, only_sql.pk}
        assert ids(all_page) == [both.pk]

    def test_unknown_match_mode(self):
        with pytest.raises(InvalidRequest):
            services.list_questions("newest", tags=["sql"], match="most")

    def test_tags_are_distinct_and_do_not_inflate_score(self, author, other_user):
        question = services.create_question(author, "Many tags", "", ["b", "a", "c"])
        services.vote_on_question(other_user, question.pk, "up")

        item = services.list_questions("topvoted", tags=["a", "b"]).items[0]
        assert [tag.name for tag in item.tags.all()] == ["a", "b", "c"]
        assert item.score == 1


class TestAnswersInListing:

    def test_answers_ordered_accepted_then_score_then_oldest(self, author, make_question, make_answer, make_user):
        question = make_question()
        oldest = make_answer(question, content="oldest", age=timedelta(hours=3))
        popular = make_answer(question, content="popular", age=timedelta(hours=1))
        accepted = make_answer(question, content="accepted", age=timedelta(minutes=10))
        newer = make_answer(question, content="newer", age=timedelta(hours=2))
        services.vote_on_answer(make_user(), question.pk, popular.pk, "up")
        services.accept_answer(question.pk, accepted.pk, author)

        item = services.list_questions("newest").items[0]
        answers = list(item.answers.all())
        assert [a.pk for a in answers] == [accepted.pk, popular.pk, oldest.pk, newer.pk]
        assert [a.score for a in answers] == [0, 1, 0, 0]


class TestLookupAndSearch:

    def test_get_question(self, make_question, make_answer):
        question = make_question()
        make_answer(question)
        found = services.get_question(question.pk)
        assert found.answer_count == 1
        assert len(found.answers.all()) == 1

    def test_get_missing_question(self):
        with pytest.raises(NotFound):
            services.get_question(31337)

    def test_search_matches_title_or_description(self, make_question):
        by_title = make_question(title="Postgres window functions", description="")
        by_body = make_question(title="Ranking rows", description="using WINDOW clauses")
        make_question(title="Flexbox centering", description="css")

        page = services.search_questions("window")
        assert set(ids(page)) == {by_title.pk, by_body.pk}

    def test_search_requires_query(self):
        with pytest.raises(InvalidRequest):
            services.search_questions("   ")

    def test_search_pages(self, make_question):
        for i in range(3):
            make_question(title=f"Regex question {i}")
        assert len(services.search_questions("regex", page=2, limit=2).items) == 1
