import re
from typing import Any

from bson.regex import Regex


# Only matches canonical unsigned integers: "0" or digits without a leading zero
_INTEGER_PATTERN = re.compile(r"^([0-9]|[1-9]\d+)$")
_OPERATOR_PATTERN = re.compile(r"^(?:\s*(<>|<=|>=|<|>|=))?(.*)$", re.DOTALL)

MAX_INT64 = 2**63 - 1

OPERATORS = {
	"<>": "$ne",
	"<=": "$lte",
	">=": "$gte",
	"<": "$lt",
	">": "$gt",
}


def parse_comparison(value: str, partial_match: bool = False) -> tuple[str | None, Any]:
	""" Splits an optional leading comparison operator off a search string and coerces the remainder.

	"<>5" -> ("<>", 5), ">=abc" -> (">=", "abc"), "12" -> (None, 12).
	With partial_match the remainder becomes a case-insensitive regex instead.
	"""
	match = _OPERATOR_PATTERN.match(value)
	# The pattern accepts any string, the guard keeps the type checker honest
	if match is None:
		return None, value
	operator, remainder = match.group(1), match.group(2)

	if partial_match:
		return operator, Regex(remainder, "i")

	if _INTEGER_PATTERN.match(remainder) and int(remainder) <= MAX_INT64:
		return operator, int(remainder)
	return operator, remainder

def comparison_condition(operator: str | None, value: Any) -> Any:
	""" Turns a parsed operator and value into the query value for a single field. """
	mongo_operator = OPERATORS.get(operator or "=")
	if mongo_operator is None:
		return value
	return {mongo_operator: value}

def compare_value(value: str, partial_match: bool = False) -> Any:
	""" parse_comparison() and comparison_condition() in one step. """
	return comparison_condition(*parse_comparison(value, partial_match))
