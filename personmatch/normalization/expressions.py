"""SQL expressions that normalize person fields inside the backing engine.

Every builder takes a column expression and returns a new expression typed
as String. The expressions are pure and total: values they cannot interpret
become NULL, which is the "unknown" value for every field. Each is
idempotent, so normalizing an already-normalized column is a no-op.
"""

from sqlalchemy import String, and_, case, func, literal, type_coerce
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import ColumnElement, FunctionElement

from personmatch.domain.fields import CanonicalField

# Accented letters folded to their uppercase ASCII base letter
_FOLD_FROM = (
    "ÀÁÂÃÄÅàáâãäåĀāĂăĄą"
    "ÇçĆćČč"
    "ĎďĐđ"
    "ÈÉÊËèéêëĒēĖėĘęĚě"
    "ÌÍÎÏìíîïĪīĮį"
    "ŁłĹĺĽľ"
    "ÑñŃńŇň"
    "ÒÓÔÕÖØòóôõöøŌōŐő"
    "ŔŕŘř"
    "ŚśŠšŞş"
    "ŤťŢţ"
    "ÙÚÛÜùúûüŪūŮůŰűŲų"
    "ÝýÿŸ"
    "ŹźŻżŽž"
)
_FOLD_TO = (
    "AAAAAAAAAAAAAAAAAA"
    "CCCCCC"
    "DDDD"
    "EEEEEEEEEEEEEEEE"
    "IIIIIIIIIIII"
    "LLLLLL"
    "NNNNNN"
    "OOOOOOOOOOOOOOOO"
    "RRRR"
    "SSSSSS"
    "TTTT"
    "UUUUUUUUUUUUUUUU"
    "YYYY"
    "ZZZZZZ"
)

# Removed entirely from names and postcodes
_PUNCTUATION = " \t-'’`\".,;:/()|_"
_DIGITS = "0123456789"

# Longest character list rendered as nested REPLACE on SQLite; deeper nesting
# overflows its parser stack
_NESTED_REPLACE_LIMIT = 16


class translate_chars(FunctionElement):
    """Character-wise translation, like PostgreSQL's ``translate``.

    ``from_chars[i]`` becomes ``to_chars[i]``; characters of ``from_chars``
    beyond the length of ``to_chars`` are deleted. PostgreSQL and DuckDB use
    their native ``translate``. On SQLite, long character lists call the
    ``translate`` function installed by ``register_sql_functions``. Short
    lists, and engines with no ``translate`` at all, get nested ``REPLACE``
    calls.
    """

    name = "translate_chars"
    type = String()
    # The rendered SQL depends on the character lists, which are not part of the cache key
    inherit_cache = False

    def __init__(self, expr, from_chars: str, to_chars: str = ""):
        if len(to_chars) > len(from_chars):
            raise ValueError("to_chars cannot be longer than from_chars")
        self.from_chars = from_chars
        self.to_chars = to_chars
        super().__init__(expr)


def _sql_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@compiles(translate_chars)
def _compile_translate_nested_replace(element, compiler, **kw):
    (expr,) = element.clauses
    sql = compiler.process(expr, **kw)
    for idx, ch in enumerate(element.from_chars):
        replacement = element.to_chars[idx] if idx < len(element.to_chars) else ""
        sql = f"replace({sql}, {_sql_string(ch)}, {_sql_string(replacement)})"
    return sql


@compiles(translate_chars, "postgresql")
@compiles(translate_chars, "duckdb")
def _compile_translate_native(element, compiler, **kw):
    (expr,) = element.clauses
    return "translate({}, {}, {})".format(
        compiler.process(expr, **kw),
        _sql_string(element.from_chars),
        _sql_string(element.to_chars),
    )


@compiles(translate_chars, "sqlite")
def _compile_translate_sqlite(element, compiler, **kw):
    if len(element.from_chars) <= _NESTED_REPLACE_LIMIT:
        return _compile_translate_nested_replace(element, compiler, **kw)
    return _compile_translate_native(element, compiler, **kw)


def _as_text(expr) -> ColumnElement:
    if isinstance(expr.type, String):
        return expr
    return expr.cast(String)


def _substr(expr, start: int, length: int) -> ColumnElement:
    return type_coerce(func.substr(expr, start, length), String)


def _blank_to_null(expr) -> ColumnElement:
    return type_coerce(func.nullif(expr, literal("", String)), String)


def normalize_name(expr) -> ColumnElement:
    """Fold diacritics, uppercase, and strip punctuation and whitespace.

    ``"  Anne-Marie O'Brién "`` becomes ``"ANNEMARIEOBRIEN"``. Empty results
    become NULL.
    """
    folded = translate_chars(_as_text(expr), _FOLD_FROM + _PUNCTUATION, _FOLD_TO)
    return _blank_to_null(func.upper(folded))


def normalize_postcode(expr) -> ColumnElement:
    """Uppercase and strip whitespace and punctuation, keeping letters and digits.

    ``"sw1a 1aa"`` becomes ``"SW1A1AA"``. Empty results become NULL.
    """
    stripped = translate_chars(_as_text(expr), _PUNCTUATION)
    return _blank_to_null(func.upper(stripped))


def _iso_from_day_first(s) -> ColumnElement:
    return _substr(s, 7, 4) + "-" + _substr(s, 4, 2) + "-" + _substr(s, 1, 2)


def normalize_dob(expr) -> ColumnElement:
    """Render a date of birth as ISO ``YYYY-MM-DD``.

    Accepted inputs: DATE/DATETIME columns, ``YYYY-MM-DD`` (optionally
    followed by a time), ``YYYY/MM/DD``, ``DD/MM/YYYY``, ``DD-MM-YYYY``,
    ``DD.MM.YYYY`` and ``YYYYMMDD``. Anything else, including a month outside
    01-12 or a day outside 01-31, becomes NULL.
    """
    s = type_coerce(func.trim(_as_text(expr)), String)

    candidate = type_coerce(
        case(
            (s.like("____-__-__%"), _substr(s, 1, 10)),
            (s.like("____/__/__"), type_coerce(func.replace(s, "/", "-"), String)),
            (s.like("__/__/____"), _iso_from_day_first(s)),
            (s.like("__-__-____"), _iso_from_day_first(s)),
            (s.like("__.__.____"), _iso_from_day_first(s)),
            (
                and_(func.length(s) == 8, translate_chars(s, _DIGITS) == ""),
                _substr(s, 1, 4) + "-" + _substr(s, 5, 2) + "-" + _substr(s, 7, 2),
            ),
            else_=None,
        ),
        String,
    )

    valid = and_(
        func.length(candidate) == 10,
        translate_chars(candidate, _DIGITS) == "--",
        _substr(candidate, 6, 2).between("01", "12"),
        _substr(candidate, 9, 2).between("01", "31"),
    )
    return type_coerce(case((valid, candidate), else_=None), String)


NORMALIZERS = {
    CanonicalField.FORENAME: normalize_name,
    CanonicalField.SURNAME: normalize_name,
    CanonicalField.DOB: normalize_dob,
    CanonicalField.POSTCODE: normalize_postcode,
}


def normalize_expression(field: CanonicalField, expr) -> ColumnElement:
    """Apply the normalizer registered for ``field``."""
    try:
        normalizer = NORMALIZERS[CanonicalField(field)]
    except KeyError:
        raise ValueError(f"Field '{field}' has no normalizer") from None
    return normalizer(expr)
