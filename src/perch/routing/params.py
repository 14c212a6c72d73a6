"""Route constraint patterns.

Maps the constraint of a token like ``{id:int}`` to the regex a path
segment must match for the route to apply. Constraints only gate
matching; values stay strings until the conversion engine types them.
Unknown constraints match any segment.
"""

# Anything within one path segment
ANY_SEGMENT = r"[^/]+"

_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"

# constraint name -> regex for one segment (or part of one)
CONSTRAINTS: dict[str, str] = {
    "int": r"-?\d+",
    "long": r"-?\d+",
    "bool": r"(?i:true|false)",
    "guid": r"\{?[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}\}?",
    "float": _NUMBER,
    "double": _NUMBER,
    "decimal": _NUMBER,
    "datetime": ANY_SEGMENT,
    "alpha": r"[A-Za-z]+",
}


def constraint_pattern(constraint: str | None) -> str:
    """Regex for *constraint*.

    Chained constraints (``int:min(1)``) use the first one this table
    knows; arguments in parentheses are ignored.
    """
    if not constraint:
        return ANY_SEGMENT
    for part in constraint.split(":"):
        name = part.split("(", 1)[0].strip().lower()
        pattern = CONSTRAINTS.get(name)
        if pattern is not None:
            return pattern
    return ANY_SEGMENT
