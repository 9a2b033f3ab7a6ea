"""Category hierarchy index.

Provides:
- build_descendant_map / get_descendants: closure lookup over a tree snapshot
- select_closure / deselect_closure: set algebra used by the store when toggling
- CategoryHierarchy: holder for the current tree snapshot and its closure map
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from .logger import get_logger
from .models import CategoryNode

logger = get_logger("hierarchy")

DescendantMap = Mapping[str, List[str]]


def build_descendant_map(tree: Optional[Sequence[CategoryNode]]) -> Dict[str, List[str]]:
    """Map every node id to all ids reachable below it, depth-first."""
    descendants: Dict[str, List[str]] = {}

    def collect(node: CategoryNode) -> List[str]:
        below: List[str] = []
        for child in node.children:
            below.append(child.id)
            below.extend(collect(child))
        descendants[node.id] = below
        return below

    for root in tree or []:
        collect(root)
    return descendants


def get_descendants(descendant_map: DescendantMap, category_id: str) -> List[str]:
    """Copy of the stored descendants, or [] for an unknown id."""
    return list(descendant_map.get(category_id, ()))


def select_closure(selected: Iterable[str], category_id: str, descendant_map: DescendantMap) -> FrozenSet[str]:
    return frozenset(selected) | {category_id} | frozenset(get_descendants(descendant_map, category_id))


def deselect_closure(selected: Iterable[str], category_id: str, descendant_map: DescendantMap) -> FrozenSet[str]:
    return frozenset(selected) - {category_id} - frozenset(get_descendants(descendant_map, category_id))


def find_node_by_id(tree: Sequence[CategoryNode], category_id: str) -> Optional[CategoryNode]:
    for node in tree:
        if node.id == category_id:
            return node
        found = find_node_by_id(node.children, category_id)
        if found:
            return found
    return None


def find_node_by_name(tree: Sequence[CategoryNode], name: str) -> Optional[CategoryNode]:
    """Depth-first search by name, case-insensitive."""
    lower_name = name.lower()
    for node in tree:
        if node.name.lower() == lower_name:
            return node
        found = find_node_by_name(node.children, name)
        if found:
            return found
    return None


def are_all_descendants_selected(descendant_map: DescendantMap, category_id: str, selected: Iterable[str]) -> bool:
    below = get_descendants(descendant_map, category_id)
    chosen = set(selected)
    return bool(below) and all(i in chosen for i in below)


def are_some_descendants_selected(descendant_map: DescendantMap, category_id: str, selected: Iterable[str]) -> bool:
    chosen = set(selected)
    return any(i in chosen for i in get_descendants(descendant_map, category_id))


class CategoryHierarchy:
    """Current category tree snapshot and the closure map derived from it.

    The map is rebuilt whole whenever a new snapshot is set.
    """

    def __init__(self, tree: Optional[Sequence[CategoryNode]] = None) -> None:
        self._tree: List[CategoryNode] = []
        self._descendants: Dict[str, List[str]] = {}
        if tree:
            self.set_tree(tree)

    @classmethod
    def from_dicts(cls, payload: Iterable[Mapping[str, Any]]) -> "CategoryHierarchy":
        return cls([CategoryNode.from_dict(node) for node in payload])

    def set_tree(self, tree: Sequence[CategoryNode]) -> None:
        self._tree = list(tree)
        self._descendants = build_descendant_map(self._tree)
        logger.debug("Rebuilt descendant map for %d categories", len(self._descendants))

    @property
    def tree(self) -> List[CategoryNode]:
        return list(self._tree)

    @property
    def descendant_map(self) -> DescendantMap:
        return self._descendants

    @property
    def is_loaded(self) -> bool:
        return bool(self._tree)

    def descendants(self, category_id: str) -> List[str]:
        return get_descendants(self._descendants, category_id)

    def closure(self, category_id: str) -> List[str]:
        """The id itself followed by all of its descendants."""
        return [category_id, *self.descendants(category_id)]

    def find_by_name(self, name: str) -> Optional[CategoryNode]:
        return find_node_by_name(self._tree, name)

    def find_by_id(self, category_id: str) -> Optional[CategoryNode]:
        return find_node_by_id(self._tree, category_id)
