from bson.regex import Regex

from mongoyii.document.compare import compare_value, comparison_condition, parse_comparison


class TestParseComparison:
	def test_plain_integer_string(self):
		assert parse_comparison("123") == (None, 123)

	def test_zero(self):
		assert parse_comparison("0") == (None, 0)

	def test_leading_zero_stays_a_string(self):
		assert parse_comparison("0123") == (None, "0123")

	def test_operators(self):
		assert parse_comparison("<>5") == ("<>", 5)
		assert parse_comparison("<=5") == ("<=", 5)
		assert parse_comparison(">=5") == (">=", 5)
		assert parse_comparison("<5") == ("<", 5)
		assert parse_comparison(">5") == (">", 5)
		assert parse_comparison("=5") == ("=", 5)

	def test_leading_whitespace_before_operator(self):
		assert parse_comparison("  >=10") == (">=", 10)

	def test_non_numeric_remainder(self):
		assert parse_comparison(">=abc") == (">=", "abc")

	def test_too_large_for_int64_stays_a_string(self):
		value = str(2**63)
		assert parse_comparison(value) == (None, value)

	def test_partial_match_makes_a_case_insensitive_regex(self):
		operator, value = parse_comparison("sam", partial_match=True)
		assert operator is None
		assert isinstance(value, Regex)
		assert value.pattern == "sam"
		assert value.flags == Regex("sam", "i").flags

	def test_partial_match_does_not_coerce_integers(self):
		_, value = parse_comparison("123", partial_match=True)
		assert isinstance(value, Regex)


class TestComparisonCondition:
	def test_equality_is_the_bare_value(self):
		assert comparison_condition(None, 5) == 5
		assert comparison_condition("=", 5) == 5

	def test_mongo_operators(self):
		assert comparison_condition("<>", 5) == {"$ne": 5}
		assert comparison_condition("<=", 5) == {"$lte": 5}
		assert comparison_condition(">=", 5) == {"$gte": 5}
		assert comparison_condition("<", 5) == {"$lt": 5}
		assert comparison_condition(">", 5) == {"$gt": 5}

	def test_compare_value(self):
		assert compare_value("<>5") == {"$ne": 5}
		assert compare_value("sammaye") == "sammaye"
