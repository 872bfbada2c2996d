"""End-to-end execution of every builder against the embedded driver."""

import threading

import pytest

from quarry import (
    DeleteResult,
    EntitySubscriberInterface,
    QueryFailedError,
    UpdateResult,
)


@pytest.fixture
def people(sqljs):
    sqljs.create_query_builder().insert().into("User").values(
        [{"name": "Ada", "age": 36}, {"name": "Grace", "age": 45}, {"name": "Linus", "age": 21}]
    ).execute()
    return sqljs


class TestInsert:
    def test_insert_reports_identifiers(self, sqljs):
        result = sqljs.create_query_builder().insert().into("User").values(
            [{"name": "Ada", "age": 36}, {"name": "Grace", "age": 45}]
        ).execute()

        assert result.identifiers == [{"id": 1}, {"id": 2}]
        assert result.raw["affected_rows"] == 2
        assert sqljs.query("SELECT id, name FROM users ORDER BY id") == [
            {"id": 1, "name": "Ada"},
            {"id": 2, "name": "Grace"},
        ]

    def test_insert_or_ignore_skips_duplicates(self, sqljs):
        builder = sqljs.create_query_builder().insert().into("Post").values(
            {"author_id": 1, "slug": "intro", "title": "Hello"}
        )
        builder.execute()
        builder.clone().or_ignore().execute()

        assert sqljs.query("SELECT revision, post_title FROM posts") == [{"revision": 1, "post_title": "Hello"}]

    def test_duplicate_key_fails_and_transaction_rolls_back(self, people):
        builder = people.create_query_builder().insert().into("User").values(
            [{"name": "New"}, {"id": 1, "name": "Duplicate"}]
        ).use_transaction()

        with pytest.raises(QueryFailedError) as exc_info:
            builder.execute()

        assert exc_info.value.query.startswith('INSERT INTO "users"')
        assert people.query("SELECT COUNT(*) AS n FROM users") == [{"n": 3}]


class TestConcurrentCallers:
    def test_transactional_inserts_from_several_threads(self, sqljs):
        errors = []

        def insert_rows(worker):
            try:
                for index in range(30):
                    sqljs.create_query_builder().insert().into("User").values(
                        {"name": f"w{worker}-{index}", "age": index}
                    ).use_transaction().execute()
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=insert_rows, args=(worker,)) for worker in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(30)

        assert errors == []
        assert sqljs.query("SELECT COUNT(*) AS n FROM users") == [{"n": 120}]

    def test_statements_wait_for_another_threads_transaction(self, sqljs):
        inside = threading.Event()

        def other_caller():
            inside.wait(5)
            sqljs.create_query_builder().insert().into("User").values({"name": "Grace"}).execute()

        worker = threading.Thread(target=other_caller)
        worker.start()
        with pytest.raises(RuntimeError):
            with sqljs.transaction() as runner:
                sqljs.create_query_builder(query_runner=runner).insert().into("User").values({"name": "Ada"}).execute()
                inside.set()
                worker.join(0.2)
                assert worker.is_alive()
                raise RuntimeError("abort")
        worker.join(5)

        assert sqljs.query("SELECT name FROM users") == [{"name": "Grace"}]


class TestUpdate:
    def test_update_by_condition(self, people):
        result = (
            people.create_query_builder()
            .update("User", {"age": lambda: "age + 1"})
            .where("age > :age", {"age": 30})
            .execute()
        )

        assert isinstance(result, UpdateResult)
        assert result.affected == 2
        assert people.query("SELECT age FROM users ORDER BY id") == [{"age": 37}, {"age": 46}, {"age": 21}]

    def test_version_column_is_bumped(self, sqljs):
        sqljs.create_query_builder().insert().into("Post").values(
            {"author_id": 1, "slug": "intro", "title": "Hello"}
        ).execute()

        sqljs.create_query_builder().update("Post", {"title": "Bye"}).where_in_ids(
            {"author_id": 1, "slug": "intro"}
        ).execute()

        row = sqljs.query("SELECT post_title, revision, updated_at FROM posts")[0]
        assert row["post_title"] == "Bye"
        assert row["revision"] == 2
        assert row["updated_at"] is not None


class TestSelect:
    def test_raw_rows_order_and_paging(self, people):
        rows = (
            people.create_query_builder("User", "u")
            .select(["u.name"])
            .order_by("u.age", "DESC")
            .limit(2)
            .offset(1)
            .get_raw_many()
        )
        assert rows == [{"name": "Ada"}, {"name": "Linus"}]

    def test_offset_without_limit(self, people):
        rows = people.create_query_builder("User", "u").select(["u.id"]).order_by("u.id").offset(2).get_raw_many()
        assert rows == [{"id": 3}]

    def test_raw_one(self, people):
        row = people.create_query_builder("User", "u").where({"name": "Grace"}).get_raw_one()
        assert row["age"] == 45
        assert people.create_query_builder("User", "u").where({"name": "nobody"}).get_raw_one() is None

    def test_soft_deleted_rows_are_hidden(self, people):
        people.create_query_builder().update("User", {"deleted_at": "2024-01-01"}).where(
            "name = :name", {"name": "Grace"}
        ).execute()

        visible = people.create_query_builder("User", "u")
        assert visible.get_count() == 2
        assert visible.clone().with_deleted().get_count() == 3
        assert [row["name"] for row in visible.order_by("u.id").get_raw_many()] == ["Ada", "Linus"]

    def test_where_in_parameter_expansion(self, people):
        rows = people.create_query_builder("User", "u").select(["u.name"]).where(
            {"age": [21, 45]}
        ).order_by("u.name").get_raw_many()
        assert rows == [{"name": "Grace"}, {"name": "Linus"}]


class TestDelete:
    def test_delete_by_ids(self, people):
        result = people.create_query_builder().delete().from_("User").where_in_ids([1, 3]).execute()

        assert isinstance(result, DeleteResult)
        assert result.affected == 2
        assert people.query("SELECT name FROM users") == [{"name": "Grace"}]

    def test_delete_inside_caller_transaction(self, people):
        with pytest.raises(RuntimeError):
            with people.transaction() as runner:
                people.create_query_builder(query_runner=runner).delete().from_("User").execute()
                raise RuntimeError("abort")

        assert people.query("SELECT COUNT(*) AS n FROM users") == [{"n": 3}]


class RecordingSubscriber(EntitySubscriberInterface):
    def __init__(self, target=None):
        self.target = target
        self.calls = []

    def listen_to(self):
        return self.target

    def _record(self, name, event):
        self.calls.append((name, event.entity))

    def before_insert(self, event):
        self._record("before_insert", event)

    def after_insert(self, event):
        self._record("after_insert", event)

    def after_update(self, event):
        self._record("after_update", event)

    def after_remove(self, event):
        self._record("after_remove", event)

    def before_transaction_start(self, event):
        self._record("before_transaction_start", event)

    def after_transaction_commit(self, event):
        self._record("after_transaction_commit", event)

    def after_transaction_rollback(self, event):
        self._record("after_transaction_rollback", event)


class TestSubscribers:
    def test_entity_events_once_per_value_set(self, sqljs):
        subscriber = RecordingSubscriber()
        sqljs.subscribers.append(subscriber)

        sqljs.create_query_builder().insert().into("User").values([{"name": "Ada"}, {"name": "Grace"}]).execute()

        assert subscriber.calls == [
            ("before_insert", {"name": "Ada"}),
            ("before_insert", {"name": "Grace"}),
            ("after_insert", {"name": "Ada"}),
            ("after_insert", {"name": "Grace"}),
        ]

    def test_listen_to_filters_by_target(self, sqljs):
        post = sqljs.get_metadata("Post").target
        users_only = RecordingSubscriber(sqljs.get_metadata("User").target)
        posts_only = RecordingSubscriber(post)
        sqljs.subscribers.extend([users_only, posts_only])

        sqljs.create_query_builder().insert().into(post).values({"author_id": 1, "slug": "a"}).execute()
        sqljs.create_query_builder().delete().from_("User").execute()

        assert [name for name, _ in users_only.calls] == ["after_remove"]
        assert [name for name, _ in posts_only.calls] == ["before_insert", "after_insert"]

    def test_transaction_events_reach_every_subscriber(self, sqljs):
        subscriber = RecordingSubscriber(target="Nothing")
        sqljs.subscribers.append(subscriber)

        sqljs.create_query_builder().update("User", {"age": 1}).use_transaction().execute()

        assert subscriber.calls == [
            ("before_transaction_start", None),
            ("after_transaction_commit", None),
        ]

    def test_failing_statement_reports_rollback(self, sqljs):
        subscriber = RecordingSubscriber(target="Nothing")
        sqljs.subscribers.append(subscriber)

        with pytest.raises(QueryFailedError):
            sqljs.create_query_builder().delete().from_("missing_table").use_transaction().execute()

        assert [name for name, _ in subscriber.calls] == ["before_transaction_start", "after_transaction_rollback"]

    def test_hook_errors_propagate(self, sqljs):
        class Rejecting(EntitySubscriberInterface):
            def before_remove(self, event):
                raise PermissionError("read only")

        sqljs.subscribers.append(Rejecting())
        sqljs.query("INSERT INTO users (name) VALUES ('Ada')")

        with pytest.raises(PermissionError):
            sqljs.create_query_builder().delete().from_("User").use_transaction().execute()

        assert sqljs.query("SELECT COUNT(*) AS n FROM users") == [{"n": 1}]
