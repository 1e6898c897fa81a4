"""
Dialect-portable SQL building blocks for the feed queries.

The candidate queries run unchanged on TiDB/MySQL, PostgreSQL and SQLite.
The two places where those dialects disagree (aggregating rows into a JSON
array, and the hours between two timestamps) are isolated here as
SQLAlchemy compiler-extension constructs.
"""
from sqlalchemy import Float, func, literal_column, select
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement


class json_objects_array(FunctionElement):
    """Aggregate rows into a JSON array of objects.

    Keyword arguments map JSON keys to column expressions, in order::

        json_objects_array(url=Media.media_url, type=Media.media_type)
    """

    name = "json_objects_array"
    inherit_cache = True

    def __init__(self, **columns):
        args = []
        for key, column in columns.items():
            args.append(literal_column(f"'{key}'"))
            args.append(column)
        super().__init__(*args)


@compiles(json_objects_array)
def _json_objects_array_default(element, compiler, **kw):
    return "json_agg(json_build_object(%s))" % compiler.process(element.clauses, **kw)


@compiles(json_objects_array, "mysql")
def _json_objects_array_mysql(element, compiler, **kw):
    return "JSON_ARRAYAGG(JSON_OBJECT(%s))" % compiler.process(element.clauses, **kw)


@compiles(json_objects_array, "sqlite")
def _json_objects_array_sqlite(element, compiler, **kw):
    return "json_group_array(json_object(%s))" % compiler.process(element.clauses, **kw)


class hours_between(FunctionElement):
    """Fractional hours from ``earlier`` to ``later``: ``hours_between(later, earlier)``."""

    name = "hours_between"
    type = Float()
    inherit_cache = True


@compiles(hours_between)
def _hours_between_default(element, compiler, **kw):
    later, earlier = list(element.clauses)
    return "(EXTRACT(EPOCH FROM (%s - %s)) / 3600.0)" % (
        compiler.process(later, **kw),
        compiler.process(earlier, **kw),
    )


@compiles(hours_between, "mysql")
def _hours_between_mysql(element, compiler, **kw):
    later, earlier = list(element.clauses)
    return "(TIMESTAMPDIFF(SECOND, %s, %s) / 3600.0)" % (
        compiler.process(earlier, **kw),
        compiler.process(later, **kw),
    )


@compiles(hours_between, "sqlite")
def _hours_between_sqlite(element, compiler, **kw):
    later, earlier = list(element.clauses)
    return "((julianday(%s) - julianday(%s)) * 24.0)" % (
        compiler.process(later, **kw),
        compiler.process(earlier, **kw),
    )


def json_array(aggregate, from_clause, *criteria, correlate=()):
    """Scalar subquery returning ``aggregate`` over ``from_clause``, ``'[]'`` when empty."""
    stmt = select(aggregate).select_from(from_clause).where(*criteria)
    if correlate:
        stmt = stmt.correlate(*correlate)
    return func.coalesce(stmt.scalar_subquery(), literal_column("'[]'"))


def count_of(from_clause, *criteria, correlate=()):
    """Correlated ``SELECT COUNT(*)`` scalar subquery."""
    stmt = select(func.count()).select_from(from_clause).where(*criteria)
    if correlate:
        stmt = stmt.correlate(*correlate)
    return stmt.scalar_subquery()
