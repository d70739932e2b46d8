"""
Unit tests for BatchInserter.
"""
import math
import unittest
from collections import namedtuple
from dataclasses import dataclass
from unittest import mock

from record_batcher import BatchInserter, LazyRecordCursor, QueryCollector
from record_batcher.exceptions import (
    ExecutionError,
    InputShapeError,
    SizeLimitExceededError,
    ValidationError,
)
from record_batcher.serialization import insert_prefix, render_insert, tuple_sql


def make_dummy_data(numrows):
    """Records with a course number and name, numbered from 1."""
    return [{"course": f"{i}", "name": f"Course {i}"} for i in range(1, numrows + 1)]


def double_item_properties(item):
    """Transformer returning a copy of the record with every value repeated twice."""
    return {key: str(value) * 2 for key, value in item.items()}


def item_validator(item):
    """Validator accepting records with a positive integer course."""
    if "course" not in item or "name" not in item:
        return False
    if not isinstance(item["course"], int) or item["course"] <= 0:
        return False
    return item["name"] != "badvalue"


class TestBatchInserter(unittest.TestCase):
    """Test cases for BatchInserter."""

    def setUp(self):
        """Set up test fixtures."""
        self.execute = mock.Mock()
        self.inserter = BatchInserter(self.execute, max_query_size=1_000_000, max_rows=1000)

    def test_init_with_custom_values(self):
        inserter = BatchInserter(
            self.execute, max_query_size=500, max_rows=10, placeholder="%s",
            table_prefix="mdl_", sequence_column=None, dry_run=True
        )
        self.assertEqual(inserter.max_query_size, 500)
        self.assertEqual(inserter.max_rows, 10)
        self.assertEqual(inserter.placeholder, "%s")
        self.assertEqual(inserter.table_prefix, "mdl_")
        self.assertIsNone(inserter.sequence_column)
        self.assertTrue(inserter.dry_run)

    def test_invalid_limits(self):
        with self.assertRaises(ValueError):
            BatchInserter(self.execute, max_query_size=0)
        with self.assertRaises(ValueError):
            BatchInserter(self.execute, max_rows=0)
        with self.assertRaises(ValueError):
            BatchInserter(None)

    def test_single_batch(self):
        data = make_dummy_data(3)

        self.inserter.insert_all("unit_table", data)

        self.execute.assert_called_once_with(
            "INSERT INTO unit_table (course,name) VALUES (?,?),(?,?),(?,?)",
            ["1", "Course 1", "2", "Course 2", "3", "Course 3"]
        )
        self.assertEqual(self.inserter.total_rows, 3)
        self.assertEqual(self.inserter.last_statement_count, 1)

    def test_object_order_different(self):
        data = [
            {"course": "1", "name": "Course 1"},
            {"name": "Course 2", "course": "2"},
        ]

        self.inserter.insert_all("unit_table", data)

        self.execute.assert_called_once()
        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO unit_table (course,name) VALUES (?,?),(?,?)")
        self.assertEqual(params, ["1", "Course 1", "2", "Course 2"])

    def test_two_batches(self):
        self.inserter.insert_all("unit_table", make_dummy_data(1500))

        self.assertEqual(self.execute.call_count, 2)
        first_params = self.execute.call_args_list[0][0][1]
        second_params = self.execute.call_args_list[1][0][1]
        self.assertEqual(len(first_params), 2000)
        self.assertEqual(len(second_params), 1000)
        self.assertEqual(second_params[:2], ["1001", "Course 1001"])

    def test_at_row_count_boundary(self):
        max_rows = 10
        tests = {
            max_rows - 1: 1,
            max_rows: 1,
            max_rows + 1: 2,
            max_rows * 2 - 1: 2,
            max_rows * 2: 2,
            max_rows * 2 + 1: 3,
        }
        for numrows, write_count in tests.items():
            with self.subTest(numrows=numrows):
                execute = mock.Mock()
                inserter = BatchInserter(execute, max_rows=max_rows)
                inserter.insert_all("unit_table", make_dummy_data(numrows))

                self.assertEqual(execute.call_count, write_count)
                self.assertEqual(inserter.total_rows, numrows)

    def test_statement_count_is_ceiling_of_rows(self):
        for max_rows in (1, 3, 7):
            for numrows in (1, 5, 21, 22):
                with self.subTest(max_rows=max_rows, numrows=numrows):
                    execute = mock.Mock()
                    BatchInserter(execute, max_rows=max_rows).insert_all(
                        "unit_table", make_dummy_data(numrows)
                    )
                    self.assertEqual(execute.call_count, math.ceil(numrows / max_rows))

    def test_at_query_size_boundary(self):
        max_query_size = 200
        query_length = len("INSERT INTO unit_table (course,name) VALUES ('1','')")
        second_item_query_length = len(",('2','a')")
        first_boundary_data_size = max_query_size - query_length - second_item_query_length

        tests = {
            first_boundary_data_size - 1: 1,
            first_boundary_data_size: 1,
            first_boundary_data_size + 1: 2,
        }
        for datasize, write_count in tests.items():
            with self.subTest(datasize=datasize):
                execute = mock.Mock()
                inserter = BatchInserter(execute, max_query_size=max_query_size)
                data = [
                    {"course": 1, "name": "a" * datasize},
                    {"course": 2, "name": "b"},
                ]

                inserter.insert_all("unit_table", data)

                self.assertEqual(execute.call_count, write_count)
                self.assertEqual(inserter.total_rows, 2)

    def test_record_exactly_at_size_limit(self):
        record = {"course": 1, "name": "abc"}
        size = len(insert_prefix("unit_table", ["course", "name"]) + tuple_sql([1, "abc"]))

        inserter = BatchInserter(self.execute, max_query_size=size)
        inserter.insert_all("unit_table", [record])

        self.execute.assert_called_once()

    def test_boolean_columns_at_size_boundary(self):
        prefix = len(insert_prefix("unit_table", ["course", "active"]))
        tuple_size = len("('1','1')")
        data = [{"course": 1, "active": True}, {"course": 2, "active": False}]

        inserter = BatchInserter(self.execute, max_query_size=prefix + tuple_size * 2 + 1)
        inserter.insert_all("unit_table", data)

        self.execute.assert_called_once_with(
            "INSERT INTO unit_table (course,active) VALUES (?,?),(?,?)", [1, True, 2, False]
        )

        execute = mock.Mock()
        inserter = BatchInserter(execute, max_query_size=prefix + tuple_size * 2)
        inserter.insert_all("unit_table", data)

        self.assertEqual(execute.call_count, 2)

    def test_first_item_exceeds_max_query_size(self):
        inserter = BatchInserter(self.execute, max_query_size=100)
        data = [
            {"course": 1, "name": "a" * 100},
            {"course": 2, "name": "b"},
        ]

        with self.assertRaises(SizeLimitExceededError) as ctx:
            inserter.insert_all("unit_table", data)

        self.assertEqual(ctx.exception.limit, 100)
        self.assertGreater(ctx.exception.size, 100)
        self.execute.assert_not_called()

    def test_second_item_exceeds_max_query_size(self):
        inserter = BatchInserter(self.execute, max_query_size=100)
        data = [
            {"course": 1, "name": "a"},
            {"course": 2, "name": "b" * 100},
        ]

        with self.assertRaises(SizeLimitExceededError):
            inserter.insert_all("unit_table", data)

        self.execute.assert_not_called()
        self.assertEqual(inserter.current_batch, [])

    def test_size_and_row_limits_are_independent(self):
        # Size alone forces a flush even though the row limit is far away
        execute = mock.Mock()
        prefix = len(insert_prefix("unit_table", ["course", "name"]))
        tuple_size = len(tuple_sql(["1", "Course 1"]))
        inserter = BatchInserter(execute, max_query_size=prefix + tuple_size * 2, max_rows=1000)

        inserter.insert_all("unit_table", make_dummy_data(3))

        self.assertEqual(execute.call_count, 3)

    def test_empty_iterable(self):
        self.inserter.insert_all("unit_table", [])

        self.execute.assert_not_called()
        self.assertEqual(self.inserter.total_statements, 0)

    def test_bad_iterable(self):
        for records in ("bad-iterable", 42, None, {"course": 1}):
            with self.subTest(records=records):
                with self.assertRaises(InputShapeError):
                    self.inserter.insert_all("unit_table", records)

    def test_bad_iterable_item(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", ["not an object"])

    def test_bad_iterable_second_item(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{"property": "value"}, "not an object"])
        self.execute.assert_not_called()

    def test_bad_object_no_properties(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{}])

    def test_bad_object_id_only(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{"id": 1}])

    def test_sequence_column_is_dropped(self):
        self.inserter.insert_all("unit_table", [{"id": 5, "course": 1, "name": "x"}])

        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO unit_table (course,name) VALUES (?,?)")
        self.assertEqual(params, [1, "x"])

    def test_sequence_column_kept_when_disabled(self):
        inserter = BatchInserter(self.execute, sequence_column=None)
        inserter.insert_all("unit_table", [{"id": 5, "course": 1}])

        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO unit_table (id,course) VALUES (?,?)")
        self.assertEqual(params, [5, 1])

    def test_inconsistent_field_set(self):
        data = [
            {"course": 1, "name": "a"},
            {"course": 2},
        ]
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", data)

        data = [
            {"course": 1, "name": "a"},
            {"course": 2, "name": "b", "extra": True},
        ]
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", data)

        self.execute.assert_not_called()

    def test_hostile_column_name(self):
        data = [{"a) VALUES (1); DROP TABLE users; --": "x"}]

        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", data)
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{"course": 1}], columns=["course", "name;"])

        self.execute.assert_not_called()

    def test_non_string_column_name(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{1: "a", 2: "b"}])

        self.execute.assert_not_called()

    def test_hostile_table_name(self):
        for table in ["unit_table; DROP TABLE users", "unit table", ""]:
            with self.subTest(table=table):
                with self.assertRaises(InputShapeError):
                    self.inserter.insert_all(table, [{"course": 1}])

        inserter = BatchInserter(self.execute, table_prefix="x;")
        with self.assertRaises(InputShapeError):
            inserter.insert_all("unit_table", [{"course": 1}])

        self.execute.assert_not_called()

    def test_qualified_table_name(self):
        self.inserter.insert_all("raw.unit_table", [{"course": 1}])

        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO raw.unit_table (course) VALUES (?)")

    def test_allowed_null_field(self):
        self.inserter.insert_all("unit_table", [{"course": 1, "name": None}, {"course": 2, "name": ""}])

        sql, params = self.execute.call_args[0]
        self.assertEqual(params, [1, None, 2, ""])

    def test_non_scalar_value(self):
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{"course": 1, "name": ["a", "b"]}])

    def test_explicit_columns(self):
        data = [{"course": 1, "name": "a"}, {"name": "b", "course": 2}]

        self.inserter.insert_all("unit_table", data, columns=["name", "course"])

        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO unit_table (name,course) VALUES (?,?),(?,?)")
        self.assertEqual(params, ["a", 1, "b", 2])

        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", [{"course": 1}], columns=["name", "course"])
        with self.assertRaises(InputShapeError):
            self.inserter.insert_all("unit_table", data, columns=[])

    def test_structured_record_types(self):
        @dataclass
        class Course:
            course: int
            name: str

        CourseRow = namedtuple("CourseRow", ["course", "name"])

        self.inserter.insert_all("unit_table", [Course(1, "a"), CourseRow(2, "b")])

        sql, params = self.execute.call_args[0]
        self.assertEqual(params, [1, "a", 2, "b"])

    def test_single_processor(self):
        self.inserter.insert_all("unit_table", make_dummy_data(3), double_item_properties)

        self.execute.assert_called_once()
        sql, params = self.execute.call_args[0]
        self.assertEqual(
            params,
            ["11", "Course 1Course 1", "22", "Course 2Course 2", "33", "Course 3Course 3"]
        )

    def test_processor_arguments(self):
        def add_field(item, field, value):
            item = dict(item)
            item[field] = value
            return item

        self.inserter.insert_all(
            "unit_table", make_dummy_data(2), add_field, ["timecreated", 100]
        )

        sql, params = self.execute.call_args[0]
        self.assertEqual(sql, "INSERT INTO unit_table (course,name,timecreated) VALUES (?,?,?),(?,?,?)")
        self.assertEqual(params, ["1", "Course 1", 100, "2", "Course 2", 100])

    def test_processor_can_change_record_shape(self):
        self.inserter.insert_all(
            "unit_table", [(1, "a"), (2, "b")],
            transformer=lambda row: {"course": row[0], "name": row[1]}
        )

        sql, params = self.execute.call_args[0]
        self.assertEqual(params, [1, "a", 2, "b"])

    def test_validator(self):
        data = [{"course": "string", "name": "Name"}]

        with self.assertRaises(ValidationError) as ctx:
            self.inserter.insert_all("unit_table", data, validator=item_validator)

        self.assertEqual(ctx.exception.validator_name, "item_validator")
        self.assertEqual(str(ctx.exception), "Batch insert item failed validation: item_validator")
        self.execute.assert_not_called()

    def test_validator_accepts_all(self):
        data = [{"course": i, "name": f"Course {i}"} for i in range(1, 4)]

        self.inserter.insert_all("unit_table", data, validator=item_validator)

        self.execute.assert_called_once()

    def test_validator_arguments(self):
        def max_course(item, limit):
            return item["course"] <= limit

        data = [{"course": 1, "name": "a"}, {"course": 5, "name": "b"}]

        self.inserter.insert_all("unit_table", data[:1], validator=max_course, validator_args=[3])
        with self.assertRaises(ValidationError):
            self.inserter.insert_all("unit_table", data, validator=max_course, validator_args=[3])

    def test_validator_sees_transformed_record(self):
        seen = []

        def record_validator(item):
            seen.append(item)
            return True

        self.inserter.insert_all(
            "unit_table", make_dummy_data(1),
            transformer=double_item_properties, validator=record_validator
        )

        self.assertEqual(seen, [{"course": "11", "name": "Course 1Course 1"}])

    def test_validation_failure_after_flush(self):
        data = make_dummy_data(6)
        data[5]["name"] = "badvalue"
        inserter = BatchInserter(self.execute, max_rows=2)

        with self.assertRaises(ValidationError):
            inserter.insert_all(
                "unit_table", data, validator=lambda item: item["name"] != "badvalue"
            )

        # Earlier batches were already sent; the failing batch is discarded
        self.assertEqual(self.execute.call_count, 2)
        self.assertEqual(inserter.current_batch, [])
        self.assertEqual(inserter.current_size, 0)

    def test_execution_error_propagates_unwrapped(self):
        error = ExecutionError("no such table: badtablename")
        self.execute.side_effect = error

        with self.assertRaises(ExecutionError) as ctx:
            self.inserter.insert_all("badtablename", [{"course": 1}])

        self.assertIs(ctx.exception, error)

    def test_table_prefix(self):
        inserter = BatchInserter(self.execute, table_prefix="mdl_")
        inserter.insert_all("unit_table", [{"course": 1}])

        sql, params = self.execute.call_args[0]
        self.assertTrue(sql.startswith("INSERT INTO mdl_unit_table (course)"))

    def test_recordset_input(self):
        recordset = LazyRecordCursor.from_iterable(make_dummy_data(6))
        recordset.set_validator(lambda item: int(item["course"]) % 2 == 0)

        self.inserter.insert_all("unit_table", recordset)
        recordset.close()

        sql, params = self.execute.call_args[0]
        self.assertEqual(params, ["2", "Course 2", "4", "Course 4", "6", "Course 6"])

    def test_generator_input_is_drained_lazily(self):
        produced = []

        def records():
            for record in make_dummy_data(5):
                produced.append(record)
                yield record

        inserter = BatchInserter(self.execute, max_rows=2)

        def check_buffered(sql, params):
            # At most one record beyond the flushed batch has been read
            self.assertLessEqual(len(produced), inserter.total_rows + len(params) // 2 + 1)

        self.execute.side_effect = check_buffered
        inserter.insert_all("unit_table", records())

        self.assertEqual(self.execute.call_count, 3)

    def test_counters_across_calls(self):
        inserter = BatchInserter(self.execute, max_rows=2)
        inserter.insert_all("unit_table", make_dummy_data(3))
        inserter.insert_all("unit_table", make_dummy_data(1))

        self.assertEqual(inserter.total_statements, 3)
        self.assertEqual(inserter.total_rows, 4)
        self.assertEqual(inserter.last_statement_count, 1)


class TestDryRun(unittest.TestCase):
    """Dry run mode with a query collector."""

    def test_dry_run_mode(self):
        execute = mock.Mock()
        collector = QueryCollector()
        inserter = BatchInserter(
            execute, max_rows=2, dry_run=True, query_collector=collector
        )

        inserter.insert_all("unit_table", make_dummy_data(3))

        execute.assert_not_called()
        self.assertEqual(len(collector.queries), 2)
        self.assertEqual(collector.total_row_count, 3)
        self.assertEqual(collector.queries[0]["params"], ["1", "Course 1", "2", "Course 2"])

    def test_dry_run_without_callback(self):
        collector = QueryCollector()
        inserter = BatchInserter(None, dry_run=True, query_collector=collector)

        inserter.insert_all("unit_table", make_dummy_data(2))

        self.assertEqual(collector.get_stats()["total_queries"], 1)

    def test_collected_size_matches_rendered_statement(self):
        collector = QueryCollector()
        data = [
            {"course": 1, "name": "O'Brien"},
            {"course": 2, "name": None},
            {"course": 3, "name": "Zoë"},
        ]
        inserter = BatchInserter(None, max_rows=2, dry_run=True, query_collector=collector)

        inserter.insert_all("unit_table", data)

        expected = [
            render_insert("unit_table", ["course", "name"], [[1, "O'Brien"], [2, None]]),
            render_insert("unit_table", ["course", "name"], [[3, "Zoë"]]),
        ]
        self.assertEqual(
            [q["size"] for q in collector.queries],
            [len(sql.encode("utf-8")) for sql in expected]
        )

    def test_collector_used_when_executing(self):
        execute = mock.Mock()
        collector = QueryCollector()
        inserter = BatchInserter(execute, query_collector=collector)

        inserter.insert_all("unit_table", make_dummy_data(2))

        execute.assert_called_once()
        self.assertEqual(len(collector.queries), 1)


class TestAtomicInsert(unittest.TestCase):
    """Transactions around insert_all through an adapter."""

    def setUp(self):
        self.adapter = mock.Mock()
        self.adapter.get_max_query_size.return_value = 10_000
        self.adapter.placeholder = "%s"

    def test_for_adapter(self):
        inserter = BatchInserter.for_adapter(self.adapter, max_rows=5)

        self.assertEqual(inserter.max_query_size, 10_000)
        self.assertEqual(inserter.placeholder, "%s")
        self.assertEqual(inserter.max_rows, 5)

        inserter.insert_all("unit_table", [{"course": 1}])
        self.adapter.execute.assert_called_once_with(
            "INSERT INTO unit_table (course) VALUES (%s)", [1]
        )

    def test_atomic_commit(self):
        inserter = BatchInserter.for_adapter(self.adapter)

        inserter.insert_all("unit_table", make_dummy_data(2), atomic=True)

        self.adapter.begin_transaction.assert_called_once()
        self.adapter.commit_transaction.assert_called_once()
        self.adapter.rollback_transaction.assert_not_called()

    def test_atomic_rollback(self):
        inserter = BatchInserter.for_adapter(self.adapter, max_rows=1)

        with self.assertRaises(ValidationError):
            inserter.insert_all(
                "unit_table", make_dummy_data(3), atomic=True,
                validator=lambda item: item["course"] != "3"
            )

        self.assertEqual(self.adapter.execute.call_count, 1)
        self.adapter.rollback_transaction.assert_called_once()
        self.adapter.commit_transaction.assert_not_called()

    def test_atomic_requires_adapter(self):
        inserter = BatchInserter(mock.Mock())
        with self.assertRaises(ValueError):
            inserter.insert_all("unit_table", [{"course": 1}], atomic=True)


if __name__ == "__main__":
    unittest.main()
