from typing import Any, Mapping


def merge_array(a: Mapping[str, Any] | None, b: Mapping[str, Any] | None) -> dict[str, Any]:
	""" Recursively merges b into a copy of a. Neither argument is modified.

	- Nested mappings are merged key by key.
	- Nested lists are concatenated, skipping elements of b that a already holds, so merging anything with itself is a no-op.
	- Any other value from b replaces the value in a.
	"""
	result: dict[str, Any] = dict(a) if a else {}
	if not b:
		return result

	for key, value in b.items():
		existing = result.get(key)
		if isinstance(value, Mapping) and isinstance(existing, Mapping):
			result[key] = merge_array(existing, value)
		elif isinstance(value, list) and isinstance(existing, list):
			merged = list(existing)
			for item in value:
				if item not in merged:
					merged.append(item)
			result[key] = merged
		else:
			result[key] = value
	return result
