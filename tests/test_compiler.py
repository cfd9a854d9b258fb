"""Tests for the compilation of operator trees into SQL statements.

Most tests compare the generated statements verbatim. This is intended: the structure of the statements (e.g. which
fragments are enclosed in subqueries) is part of the compiler's contract.
"""
from __future__ import annotations

import re
import unittest

from relvar import TableReference, qal, util
from relvar.qal import NOT, compiler, make_header, relalg
from tests import regression_suite


def t_table() -> relalg.Table:
    header = make_header([{"name": "id", "sql_type": "int", "is_key": True},
                          {"name": "val", "sql_type": "double"}])
    return relalg.Table(TableReference("t", "lab"), header)


def u_table() -> relalg.Table:
    header = make_header([{"name": "id", "sql_type": "int", "is_key": True},
                          {"name": "y", "sql_type": "varchar(8)"}])
    return relalg.Table(TableReference("u", "lab"), header)


def x_table() -> relalg.Table:
    header = make_header([{"name": "x", "sql_type": "int", "is_key": True}])
    return relalg.Table(TableReference("x"), header)


class BasicCompilationTests(regression_suite.QueryTestCase):
    def test_table(self):
        self.assertQueriesEqual(compiler.compile_statement(t_table()), "SELECT `id`,`val` FROM `lab`.`t`")

    def test_unqualified_table(self):
        self.assertQueriesEqual(compiler.compile_statement(x_table()), "SELECT `x` FROM `x`")

    def test_tuple_restriction(self):
        node = t_table().with_restrictions(*relalg.as_restrictions({"id": 3}))
        self.assertQueriesEqual(compiler.compile_statement(node), "SELECT `id`,`val` FROM `lab`.`t` WHERE `id`=3")

    def test_negated_tuple_restriction(self):
        node = t_table().with_restrictions(*relalg.as_restrictions("not", {"id": 3}))
        self.assertQueriesEqual(compiler.compile_statement(node), "SELECT `id`,`val` FROM `lab`.`t` WHERE NOT (`id`=3)")

    def test_conjunction(self):
        node = t_table().with_restrictions(*relalg.as_restrictions("val > 1", [{"id": 1}, {"id": 2}]))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`val` FROM `lab`.`t` WHERE (val > 1) AND ((`id`=1) OR (`id`=2))")

    def test_ineffective_restriction_omits_where(self):
        node = t_table().with_restrictions(*relalg.as_restrictions({"other": 1}))
        self.assertQueriesEqual(compiler.compile_statement(node), "SELECT `id`,`val` FROM `lab`.`t`")

    def test_suffix(self):
        self.assertQueriesEqual(compiler.compile_statement(t_table(), suffix=" LIMIT 5 "),
                                "SELECT `id`,`val` FROM `lab`.`t` LIMIT 5")

    def test_restricted_projection(self):
        node = relalg.Projection(t_table(), ["val->v"], relalg.as_restrictions("v > 1"))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`v` FROM (SELECT `id`,`val` AS `v` FROM `lab`.`t`) AS `$s1` WHERE (v > 1)")

    def test_projection_of_restricted_table(self):
        node = relalg.Projection(t_table().with_restrictions(qal.SqlCondition("val > 1")), [])
        self.assertQueriesEqual(compiler.compile_statement(node), "SELECT `id` FROM `lab`.`t` WHERE (val > 1)")

    def test_restricted_projection_of_restricted_table(self):
        restricted = t_table().with_restrictions(qal.SqlCondition("val > 1"))
        node = relalg.Projection(restricted, [], relalg.as_restrictions({"id": 2}))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id` FROM (SELECT `id` FROM `lab`.`t` WHERE (val > 1)) AS `$s1` WHERE `id`=2")

    def test_restricted_projection_of_restricted_join(self):
        joined = relalg.NaturalJoin(t_table(), u_table()).with_restrictions(qal.SqlCondition("val > 1"))
        node = relalg.Projection(joined, ["y"], relalg.as_restrictions("y = 'a'"))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`y` FROM (SELECT `id`,`y` FROM `lab`.`t` NATURAL JOIN `lab`.`u` "
                                "WHERE (val > 1)) AS `$s1` WHERE (y = 'a')")


class JoinCompilationTests(regression_suite.QueryTestCase):
    def test_join_of_tables(self):
        node = relalg.NaturalJoin(t_table(), u_table())
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`val`,`y` FROM `lab`.`t` NATURAL JOIN `lab`.`u`")

    def test_join_of_projections(self):
        node = relalg.NaturalJoin(relalg.Projection(t_table(), ["val->v"]), relalg.Projection(u_table(), ["y->w"]))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`v`,`w` FROM (SELECT `id`,`val` AS `v` FROM `lab`.`t`) AS `$a1` "
                                "NATURAL JOIN (SELECT `id`,`y` AS `w` FROM `lab`.`u`) AS `$a2`")

    def test_join_of_restricted_table(self):
        node = relalg.NaturalJoin(t_table(), u_table().with_restrictions(qal.SqlCondition("y = 'a'")))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`val`,`y` FROM `lab`.`t` "
                                "NATURAL JOIN (SELECT `id`,`y` FROM `lab`.`u` WHERE (y = 'a')) AS `$a1`")

    def test_blob_join_key(self):
        blob_header = make_header([{"name": "id", "sql_type": "int", "is_key": True},
                                   {"name": "val", "sql_type": "longblob"}])
        node = relalg.NaturalJoin(t_table(), relalg.Table(TableReference("b", "lab"), blob_header))
        self.assertRaises(qal.BlobJoinKey, compiler.compile_relalg, node)


class AggregationCompilationTests(regression_suite.QueryTestCase):
    def test_aggregation(self):
        node = relalg.Aggregation(t_table(), u_table(), ["count(*)->n"])
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,count(*) AS `n` FROM `lab`.`t` NATURAL JOIN `lab`.`u` GROUP BY `id`")

    def test_restricted_aggregation(self):
        node = relalg.Aggregation(t_table(), u_table(), ["count(*)->n"], relalg.as_restrictions("n > 1"))
        self.assertQueriesEqual(compiler.compile_statement(node),
                                "SELECT `id`,`n` FROM (SELECT `id`,count(*) AS `n` FROM `lab`.`t` NATURAL JOIN `lab`.`u` "
                                "GROUP BY `id`) AS `$s1` WHERE (n > 1)")

    def test_aggregate_enclosure(self):
        node = relalg.Aggregation(t_table(), u_table(), ["count(*)->n"])
        _, sql = compiler.compile_relalg(node, compiler.Enclosure.Aggregate)
        self.assertTrue(sql.startswith("(SELECT"))
        _, sql = compiler.compile_relalg(t_table(), compiler.Enclosure.Aggregate)
        self.assertEqual(sql, "`lab`.`t`")

    def test_aggregation_requires_computation(self):
        node = relalg.Aggregation(t_table(), u_table(), ["val"])
        self.assertRaises(qal.AggregateRequiresComputation, compiler.compile_relalg, node)

    def test_standalone_operators(self):
        self.assertRaises(qal.InvalidStandaloneOperator, compiler.compile_relalg, relalg.negate(t_table()))
        self.assertRaises(qal.InvalidStandaloneOperator, compiler.compile_relalg, relalg.union("val > 1", "val < 0"))


class RestrictionCompilationTests(regression_suite.QueryTestCase):
    def where_clause(self, *restrictions: object, header: qal.Header | None = None) -> str:
        header = header if header is not None else t_table().header
        return compiler.make_where_clause(header, relalg.as_restrictions(*restrictions))

    def test_empty_restrictors(self):
        no_records = qal.TupleSet([], fields=["id"])
        no_fields = qal.TupleSet([{"other": 1}])
        self.assertEqual(self.where_clause(no_records), "FALSE")
        self.assertEqual(self.where_clause(NOT, no_records), "")
        self.assertEqual(self.where_clause(no_fields), "")
        self.assertEqual(self.where_clause(NOT, no_fields), "FALSE")

    def test_relation_without_common_attributes(self):
        self.assertEqual(self.where_clause(x_table()), "")
        self.assertEqual(self.where_clause(NOT, x_table()), "FALSE")

    def test_semijoin(self):
        self.assertQueriesEqual(self.where_clause(u_table()), "((`id`) IN (SELECT `id` FROM `lab`.`u`))")
        self.assertQueriesEqual(self.where_clause("not", u_table()), "((`id`) NOT IN (SELECT `id` FROM `lab`.`u`))")

    def test_semijoin_with_restricted_relation(self):
        restricted = u_table().with_restrictions(qal.SqlCondition("y = 'a'"))
        self.assertQueriesEqual(self.where_clause(restricted),
                                "((`id`) IN (SELECT `id` FROM (SELECT `id`,`y` FROM `lab`.`u` WHERE (y = 'a')) AS `$a1`))")

    def test_union(self):
        union = relalg.union("val > 1", {"id": 2})
        self.assertQueriesEqual(self.where_clause(union), "(((val > 1)) OR (`id`=2))")
        self.assertQueriesEqual(self.where_clause("not", union), "NOT (((val > 1)) OR (`id`=2))")

    def test_union_with_ineffective_operand(self):
        union = relalg.union("val > 1", {"other": 2})
        self.assertQueriesEqual(self.where_clause(union), "(((val > 1)) OR (TRUE))")

    def test_negation(self):
        negation = relalg.negate(u_table())
        self.assertQueriesEqual(self.where_clause(negation), "NOT (((`id`) IN (SELECT `id` FROM `lab`.`u`)))")
        self.assertQueriesEqual(self.where_clause("not", negation), "(((`id`) IN (SELECT `id` FROM `lab`.`u`)))")

    def test_aliased_header(self):
        aliased = t_table().header.project(["val->v"])
        self.assertRaises(util.InvariantViolationError, compiler.make_where_clause, aliased, [qal.SqlCondition("v > 1")])


class CompilationContextTests(unittest.TestCase):
    def test_alias_format(self):
        context = compiler.CompilationContext()
        aliases = [context.next_alias("s") for _ in range(10)]
        self.assertEqual(aliases[0], "`$s1`")
        self.assertEqual(aliases[-1], "`$sa`")

    def test_unique_aliases(self):
        restricted_projection = relalg.Projection(t_table(), ["val->v"], relalg.as_restrictions("v > 1"))
        semijoin_projection = relalg.Projection(u_table(), ["y->w"],
                                                relalg.as_restrictions(relalg.Projection(t_table(), ["val->v2"])))
        aggregation = relalg.Aggregation(t_table(), u_table(), ["count(*)->n"], relalg.as_restrictions("n > 0"))
        node = relalg.NaturalJoin(relalg.NaturalJoin(restricted_projection, semijoin_projection), aggregation)

        statement = compiler.compile_statement(node)
        aliases = re.findall(r"`\$[sau][0-9a-f]+`", statement)
        self.assertGreaterEqual(len(aliases), 5)
        self.assertEqual(len(aliases), len(set(aliases)))


if __name__ == "__main__":
    unittest.main()
