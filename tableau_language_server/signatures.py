"""
Function signature table for Tableau calculation functions.

The table maps function names to their accepted argument counts and a short
documentation string. It ships with the built-in Tableau catalogue and can be
replaced or extended from a JSON file at runtime.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class FunctionCategory(Enum):
    """Function families of the calculation language."""
    AGGREGATE = "aggregate"
    STRING = "string"
    DATE = "date"
    MATH = "math"
    LOGICAL = "logical"
    TABLE_CALCULATION = "table calculation"
    TYPE_CONVERSION = "type conversion"
    OTHER = "other"


@dataclass(frozen=True)
class FunctionSignature:
    """Accepted argument counts of one function. ``max_args`` of None means unbounded."""
    name: str
    min_args: int
    max_args: Optional[int]
    category: FunctionCategory = FunctionCategory.OTHER
    documentation: str = ""

    def accepts(self, count: int) -> bool:
        if count < self.min_args:
            return False
        return self.max_args is None or count <= self.max_args

    def describe_arity(self) -> str:
        if self.max_args is None:
            return f"at least {self.min_args}"
        return f"between {self.min_args} and {self.max_args}"

    @classmethod
    def from_dict(cls, name: str, data: Any) -> 'FunctionSignature':
        """
        Create a signature from a JSON value.

        Accepts either ``[min, max]`` or an object with ``min_args``,
        ``max_args``, ``category`` and ``documentation`` keys.
        """
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError(f"Signature for {name} must be [min, max], got {data!r}")
            return cls(name.upper(), int(data[0]), None if data[1] is None else int(data[1]))

        if not isinstance(data, dict):
            raise ValueError(f"Invalid signature for {name}: {data!r}")

        category = FunctionCategory.OTHER
        if 'category' in data:
            try:
                category = FunctionCategory(data['category'])
            except ValueError:
                logger.warning(f"Invalid category for function {name}: {data['category']}")

        max_args = data.get('max_args')
        return cls(
            name=name.upper(),
            min_args=int(data.get('min_args', 0)),
            max_args=None if max_args is None else int(max_args),
            category=category,
            documentation=data.get('documentation', '')
        )


def _signatures(category: FunctionCategory, rows) -> List[FunctionSignature]:
    return [FunctionSignature(name, low, high, category, doc) for name, low, high, doc in rows]


BUILTIN_SIGNATURES: List[FunctionSignature] = (
    _signatures(FunctionCategory.AGGREGATE, [
        ("SUM", 1, 1, "Returns the sum of all values in the expression."),
        ("AVG", 1, 1, "Returns the average of all values in the expression."),
        ("COUNT", 1, 1, "Returns the number of non-null items."),
        ("COUNTD", 1, 1, "Returns the number of distinct items."),
        ("MIN", 1, 2, "Returns the minimum of an expression, or the smaller of two values."),
        ("MAX", 1, 2, "Returns the maximum of an expression, or the larger of two values."),
        ("MEDIAN", 1, 1, "Returns the median of an expression."),
        ("ATTR", 1, 1, "Returns the value if all rows share it, otherwise an asterisk."),
        ("STDEV", 1, 1, "Returns the sample standard deviation."),
        ("STDEVP", 1, 1, "Returns the population standard deviation."),
        ("VAR", 1, 1, "Returns the sample variance."),
        ("VARP", 1, 1, "Returns the population variance."),
        ("PERCENTILE", 2, 2, "Returns the value at the given percentile."),
        ("COLLECT", 1, 1, "Aggregates spatial values."),
    ])
    + _signatures(FunctionCategory.STRING, [
        ("LEN", 1, 1, "Returns the length of the string."),
        ("LEFT", 2, 2, "Returns the left-most characters of the string."),
        ("RIGHT", 2, 2, "Returns the right-most characters of the string."),
        ("MID", 2, 3, "Returns characters from the middle of the string."),
        ("CONTAINS", 2, 2, "Returns true if the string contains the substring."),
        ("REPLACE", 3, 3, "Replaces every occurrence of a substring."),
        ("UPPER", 1, 1, "Returns the string in upper case."),
        ("LOWER", 1, 1, "Returns the string in lower case."),
        ("TRIM", 1, 1, "Removes leading and trailing spaces."),
        ("LTRIM", 1, 1, "Removes leading spaces."),
        ("RTRIM", 1, 1, "Removes trailing spaces."),
        ("SPLIT", 3, 3, "Returns a token of the string split by a delimiter."),
        ("FIND", 2, 3, "Returns the position of a substring."),
        ("FINDNTH", 3, 3, "Returns the position of the nth occurrence of a substring."),
        ("ASCII", 1, 1, "Returns the ASCII code of the first character."),
        ("CHAR", 1, 1, "Returns the character for an ASCII code."),
        ("STARTSWITH", 2, 2, "Returns true if the string starts with the substring."),
        ("ENDSWITH", 2, 2, "Returns true if the string ends with the substring."),
        ("SPACE", 1, 1, "Returns a string of repeated spaces."),
        ("PROPER", 1, 1, "Capitalizes the first letter of each word."),
        ("REGEXP_EXTRACT", 2, 2, "Returns the part of the string matching the pattern."),
        ("REGEXP_EXTRACT_NTH", 3, 3, "Returns the nth group matching the pattern."),
        ("REGEXP_MATCH", 2, 2, "Returns true if the string matches the pattern."),
        ("REGEXP_REPLACE", 3, 3, "Replaces the parts of the string matching the pattern."),
    ])
    + _signatures(FunctionCategory.DATE, [
        ("DATEADD", 3, 3, "Adds an interval to a date."),
        ("DATEDIFF", 3, 4, "Returns the difference between two dates in date parts."),
        ("DATENAME", 2, 3, "Returns a date part as a string."),
        ("DATEPARSE", 2, 2, "Parses a string to a date using a format."),
        ("DATEPART", 2, 3, "Returns a date part as an integer."),
        ("DATETRUNC", 2, 3, "Truncates a date to the given date part."),
        ("TODAY", 0, 0, "Returns the current date."),
        ("NOW", 0, 0, "Returns the current date and time."),
        ("YEAR", 1, 1, "Returns the year of a date."),
        ("QUARTER", 1, 1, "Returns the quarter of a date."),
        ("MONTH", 1, 1, "Returns the month of a date."),
        ("WEEK", 1, 1, "Returns the week of a date."),
        ("DAY", 1, 1, "Returns the day of a date."),
        ("HOUR", 1, 1, "Returns the hour of a datetime."),
        ("MINUTE", 1, 1, "Returns the minute of a datetime."),
        ("SECOND", 1, 1, "Returns the second of a datetime."),
        ("WEEKDAY", 1, 1, "Returns the weekday of a date."),
        ("MAKEDATE", 3, 3, "Builds a date from year, month and day."),
        ("MAKEDATETIME", 2, 2, "Builds a datetime from a date and a time."),
        ("MAKETIME", 3, 3, "Builds a time from hour, minute and second."),
        ("ISDATE", 1, 1, "Returns true if the string is a valid date."),
    ])
    + _signatures(FunctionCategory.MATH, [
        ("ABS", 1, 1, "Returns the absolute value."),
        ("ACOS", 1, 1, "Returns the arc cosine."),
        ("ASIN", 1, 1, "Returns the arc sine."),
        ("ATAN", 1, 1, "Returns the arc tangent."),
        ("ATAN2", 2, 2, "Returns the arc tangent of two numbers."),
        ("CEILING", 1, 1, "Rounds up to the nearest integer."),
        ("COS", 1, 1, "Returns the cosine."),
        ("COT", 1, 1, "Returns the cotangent."),
        ("DEGREES", 1, 1, "Converts radians to degrees."),
        ("DIV", 2, 2, "Returns the integer part of a division."),
        ("EXP", 1, 1, "Returns e raised to the given power."),
        ("FLOOR", 1, 1, "Rounds down to the nearest integer."),
        ("HEXBINX", 2, 2, "Maps coordinates to the x of the nearest hexagonal bin."),
        ("HEXBINY", 2, 2, "Maps coordinates to the y of the nearest hexagonal bin."),
        ("LN", 1, 1, "Returns the natural logarithm."),
        ("LOG", 1, 2, "Returns the logarithm, base 10 unless given."),
        ("LOG10", 1, 1, "Returns the base 10 logarithm."),
        ("PI", 0, 0, "Returns the constant pi."),
        ("POWER", 2, 2, "Raises a number to a power."),
        ("RADIANS", 1, 1, "Converts degrees to radians."),
        ("ROUND", 1, 2, "Rounds a number to the given number of decimals."),
        ("SIGN", 1, 1, "Returns the sign of a number."),
        ("SIN", 1, 1, "Returns the sine."),
        ("SQRT", 1, 1, "Returns the square root."),
        ("SQUARE", 1, 1, "Returns the square of a number."),
        ("TAN", 1, 1, "Returns the tangent."),
        ("ZN", 1, 1, "Returns the expression, or zero if it is null."),
    ])
    + _signatures(FunctionCategory.LOGICAL, [
        ("IIF", 3, 4, "Returns one value when the test is true and another when false."),
        ("IFNULL", 2, 2, "Returns the first value if not null, otherwise the second."),
        ("ISNULL", 1, 1, "Returns true if the expression is null."),
        ("ISEMPTY", 1, 1, "Returns true if the string is empty."),
    ])
    + _signatures(FunctionCategory.TABLE_CALCULATION, [
        ("FIRST", 0, 0, "Returns the offset from the current row to the first row."),
        ("LAST", 0, 0, "Returns the offset from the current row to the last row."),
        ("INDEX", 0, 0, "Returns the index of the current row."),
        ("SIZE", 0, 0, "Returns the number of rows in the partition."),
        ("LOOKUP", 1, 2, "Returns the value of the expression at an offset."),
        ("PREVIOUS_VALUE", 1, 1, "Returns the value of this calculation in the previous row."),
        ("RANK", 1, 2, "Returns the competition rank."),
        ("RANK_DENSE", 1, 2, "Returns the dense rank."),
        ("RANK_MODIFIED", 1, 2, "Returns the modified competition rank."),
        ("RANK_PERCENTILE", 1, 2, "Returns the percentile rank."),
        ("RANK_UNIQUE", 1, 2, "Returns the unique rank."),
        ("RUNNING_AVG", 1, 1, "Returns the running average."),
        ("RUNNING_COUNT", 1, 1, "Returns the running count."),
        ("RUNNING_MAX", 1, 1, "Returns the running maximum."),
        ("RUNNING_MIN", 1, 1, "Returns the running minimum."),
        ("RUNNING_SUM", 1, 1, "Returns the running sum."),
        ("TOTAL", 1, 1, "Returns the total for the expression."),
        ("WINDOW_AVG", 1, 3, "Returns the average within the window."),
        ("WINDOW_COUNT", 1, 3, "Returns the count within the window."),
        ("WINDOW_MAX", 1, 3, "Returns the maximum within the window."),
        ("WINDOW_MEDIAN", 1, 3, "Returns the median within the window."),
        ("WINDOW_MIN", 1, 3, "Returns the minimum within the window."),
        ("WINDOW_STDEV", 1, 3, "Returns the sample standard deviation within the window."),
        ("WINDOW_SUM", 1, 3, "Returns the sum within the window."),
        ("WINDOW_VAR", 1, 3, "Returns the sample variance within the window."),
    ])
    + _signatures(FunctionCategory.TYPE_CONVERSION, [
        ("BOOL", 1, 1, "Casts the expression to a boolean."),
        ("DATE", 1, 1, "Casts the expression to a date."),
        ("DATETIME", 1, 1, "Casts the expression to a datetime."),
        ("FLOAT", 1, 1, "Casts the expression to a floating point number."),
        ("INT", 1, 1, "Casts the expression to an integer."),
        ("STR", 1, 1, "Casts the expression to a string."),
    ])
    + _signatures(FunctionCategory.OTHER, [
        ("USERNAME", 0, 0, "Returns the name of the current user."),
        ("FULLNAME", 0, 0, "Returns the full name of the current user."),
        ("ISMEMBEROF", 1, 1, "Returns true if the current user belongs to the group."),
        ("MAKEPOINT", 2, 3, "Builds a spatial point from coordinates."),
        ("DISTANCE", 3, 3, "Returns the distance between two points."),
        ("SCRIPT_REAL", 2, None, "Runs an external script returning a number."),
        ("SCRIPT_INT", 2, None, "Runs an external script returning an integer."),
        ("SCRIPT_STR", 2, None, "Runs an external script returning a string."),
        ("SCRIPT_BOOL", 2, None, "Runs an external script returning a boolean."),
    ])
)


class FunctionSignatureTable:
    """Read-only lookup of function signatures, reloadable at runtime."""

    def __init__(self, signatures: Optional[Iterable[FunctionSignature]] = None):
        self._signatures: Dict[str, FunctionSignature] = {}
        self.generation = 0
        self.reload(BUILTIN_SIGNATURES if signatures is None else signatures)

    def reload(self, signatures: Iterable[FunctionSignature]) -> None:
        """Replace the table contents."""
        self._signatures = {sig.name.upper(): sig for sig in signatures}
        self.generation += 1
        logger.debug(f"Loaded {len(self._signatures)} function signatures")

    def update(self, signatures: Iterable[FunctionSignature]) -> None:
        """Add or override individual signatures."""
        merged = dict(self._signatures)
        for sig in signatures:
            merged[sig.name.upper()] = sig
        self.reload(merged.values())

    @classmethod
    def from_dict(cls, data: Dict[str, Any], include_builtins: bool = True) -> 'FunctionSignatureTable':
        """Create a table from a ``name -> signature`` mapping."""
        table = cls(BUILTIN_SIGNATURES if include_builtins else [])
        table.update(FunctionSignature.from_dict(name, value) for name, value in data.items())
        return table

    def load_json(self, path: Path, include_builtins: bool = True) -> None:
        """
        Load signatures from a JSON file and reload the table.

        Args:
            path: Path to a JSON object mapping function names to signatures
            include_builtins: Keep the built-in catalogue underneath the file
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("Signature file must contain a JSON object")

            loaded = [FunctionSignature.from_dict(name, value) for name, value in data.items()]
            if include_builtins:
                merged = {sig.name: sig for sig in BUILTIN_SIGNATURES}
                merged.update((sig.name, sig) for sig in loaded)
                self.reload(merged.values())
            else:
                self.reload(loaded)
            logger.info(f"Loaded {len(loaded)} function signatures from {path}")

        except Exception as e:
            logger.error(f"Failed to load function signatures from {path}: {e}")
            raise

    def get(self, name: str) -> Optional[FunctionSignature]:
        return self._signatures.get(name.upper())

    def __contains__(self, name: str) -> bool:
        return name.upper() in self._signatures

    def __len__(self) -> int:
        return len(self._signatures)

    def names(self) -> List[str]:
        return sorted(self._signatures)

    def is_aggregate(self, name: str) -> bool:
        signature = self.get(name)
        return signature is not None and signature.category == FunctionCategory.AGGREGATE

    def suggest(self, name: str) -> Optional[str]:
        """
        Find the closest known function name for a misspelled one.

        Tries a prefix match first, then the longest shared prefix of at
        least two characters, then the closest length among names sharing
        the first letter.

        Args:
            name: Unknown function name

        Returns:
            Suggested function name, or None if nothing is close
        """
        target = name.upper()
        if not target:
            return None

        def by_length(candidate: str):
            return (abs(len(candidate) - len(target)), candidate)

        candidates = self.names()
        prefixed = [c for c in candidates if c.startswith(target) or target.startswith(c)]
        if prefixed:
            return min(prefixed, key=by_length)

        best_shared = 0
        shared: List[str] = []
        for candidate in candidates:
            length = _common_prefix_length(candidate, target)
            if length > best_shared:
                best_shared = length
                shared = [candidate]
            elif length == best_shared and length > 0:
                shared.append(candidate)
        if best_shared >= 2:
            return min(shared, key=by_length)

        same_initial = [c for c in candidates if c[0] == target[0]]
        if same_initial:
            return min(same_initial, key=by_length)
        return None


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


# Export main classes
__all__ = [
    "FunctionCategory",
    "FunctionSignature",
    "FunctionSignatureTable",
    "BUILTIN_SIGNATURES",
]
