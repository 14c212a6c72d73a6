"""Compiled router with trie-based path matching.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.
"""

import re
from dataclasses import dataclass

from perch.errors import MethodNotAllowed, NotFound
from perch.routing.params import ANY_SEGMENT, constraint_pattern
from perch.routing.route import PathSegment, Route, RouteMatch
from perch.routing.template import TOKEN_PATTERN, parse_token

# Pattern of a lone unconstrained token, the least specific edge
_UNCONSTRAINED = f"(?P<p0>{ANY_SEGMENT})"


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"              -> [PathSegment("users")]
        "/users/{id:int}"     -> [PathSegment("users"), PathSegment("{id:int}", <-?\\d+>, ("id",))]
        "/files/{name}.{ext}" -> [PathSegment("files"), PathSegment("{name}.{ext}", ..., ("name", "ext"))]
        "/posts/{page?}"      -> [PathSegment("posts"), PathSegment("{page?}", ..., is_optional=True)]
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if "{" not in part:
            segments.append(PathSegment(value=part))
            continue

        regex: list[str] = []
        names: list[str] = []
        optional: list[bool] = []
        position = 0
        for match in TOKEN_PATTERN.finditer(part):
            regex.append(re.escape(part[position : match.start()]))
            token = parse_token(match.group(0))
            group = f"p{len(names)}"
            capture = f"(?P<{group}>{constraint_pattern(token.constraint)})"
            regex.append(f"(?:{capture})?" if token.is_optional else capture)
            names.append(token.name)
            optional.append(token.is_optional)
            position = match.end()
        regex.append(re.escape(part[position:]))

        whole_token = len(names) == 1 and TOKEN_PATTERN.fullmatch(part) is not None
        segments.append(
            PathSegment(
                value=part,
                pattern=re.compile("".join(regex)),
                names=tuple(names),
                is_optional=whole_token and optional[0],
            )
        )
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "param_children", "routes_by_method")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Parameter children, tried in order (constrained before unconstrained)
        self.param_children: list[_ParamEdge] = []
        # Routes at this node, keyed by HTTP method
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    key: str
    regex: re.Pattern[str]
    names: tuple[str, ...]
    node: _TrieNode


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.add(Route("/users", handler, frozenset({"GET"})))
        router.add(Route("/users/{id:int}", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/users/42")
    """

    __slots__ = ("_compiled", "_root", "_routes")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._routes: list[Route] = []
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route to the router. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = parse_path(route.path)

        # Trailing optional segments may be left off the request path
        required = len(segments)
        while required > 0 and segments[required - 1].is_optional:
            required -= 1

        node = self._root
        if required == 0:
            self._register(node, route)

        for index, seg in enumerate(segments):
            if seg.is_param:
                node = self._param_child(node, seg)
            else:
                node = node.children.setdefault(seg.value, _TrieNode())
            if index + 1 >= required:
                self._register(node, route)

        self._routes.append(route)

    @staticmethod
    def _register(node: _TrieNode, route: Route) -> None:
        for method in route.methods:
            node.routes_by_method.setdefault(method, route)

    @staticmethod
    def _param_child(node: _TrieNode, seg: PathSegment) -> _TrieNode:
        assert seg.pattern is not None
        key = seg.pattern.pattern
        for edge in node.param_children:
            if edge.key == key and edge.names == seg.names:
                return edge.node
        edge = _ParamEdge(key=key, regex=seg.pattern, names=seg.names, node=_TrieNode())
        node.param_children.append(edge)
        # Stable sort: more specific patterns are tried first
        node.param_children.sort(key=lambda e: e.key == _UNCONSTRAINED)
        return edge.node

    @property
    def routes(self) -> list[Route]:
        """Return all registered routes, in registration order."""
        return list(self._routes)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against compiled routes.

        Returns a ``RouteMatch`` on success.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        allowed: set[str] = set()
        result = self._match_node(self._root, parts, 0, {}, method, allowed)

        if result is not None:
            route, params = result
            return RouteMatch(route=route, path_params=params)

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))

        raise NotFound(f"No route matches {method} {path!r}")

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
        method: str,
        allowed: set[str],
    ) -> tuple[Route, dict[str, str]] | None:
        """Recursively match path parts against the trie."""
        # All parts consumed — look for the method at this node
        if index == len(parts):
            route = node.routes_by_method.get(method)
            if route is None and method == "HEAD":
                route = node.routes_by_method.get("GET")
            if route is not None:
                return route, params
            allowed.update(node.routes_by_method)
            return None

        part = parts[index]

        # 1. Try static child first (exact match)
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, parts, index + 1, params, method, allowed)
            if result is not None:
                return result

        # 2. Try parameter children
        for edge in node.param_children:
            found = edge.regex.fullmatch(part)
            if found is None:
                continue
            captured = {
                name: found.group(f"p{i}")
                for i, name in enumerate(edge.names)
                if found.group(f"p{i}") is not None
            }
            result = self._match_node(
                edge.node, parts, index + 1, {**params, **captured}, method, allowed
            )
            if result is not None:
                return result

        return None
