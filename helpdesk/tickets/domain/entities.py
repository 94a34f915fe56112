"""
Ticket Domain Entities
======================

Category tree and intake field schema.

The category hierarchy is kept as an id-keyed arena: each record holds
its `parent_id`, and the parent -> children lookup is built on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from helpdesk.config import CategoryBranch


@dataclass(frozen=True)
class FieldRules:
    """Optional constraints on an intake field."""
    min: Optional[float] = None
    max: Optional[float] = None
    min_len: Optional[int] = None
    max_len: Optional[int] = None
    regex: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "FieldRules":
        data = data or {}
        return cls(
            min=data.get("min"),
            max=data.get("max"),
            min_len=data.get("minLen", data.get("min_len")),
            max_len=data.get("maxLen", data.get("max_len")),
            regex=data.get("regex"),
        )


@dataclass(frozen=True)
class FieldSpec:
    """One declared intake field of a category."""
    key: str
    label: str
    type: str = "text"
    required: bool = False
    options: tuple = ()
    help_text: Optional[str] = None
    placeholder: Optional[str] = None
    rules: FieldRules = field(default_factory=FieldRules)

    @classmethod
    def from_dict(cls, data: dict) -> "FieldSpec":
        return cls(
            key=data["key"],
            label=data.get("label") or data["key"],
            type=data.get("type") or "text",
            required=bool(data.get("required", False)),
            options=tuple(data.get("options") or ()),
            help_text=data.get("helpText"),
            placeholder=data.get("placeholder"),
            rules=FieldRules.from_dict(data.get("rules")),
        )

    def to_dict(self) -> dict:
        rules = {
            "min": self.rules.min,
            "max": self.rules.max,
            "minLen": self.rules.min_len,
            "maxLen": self.rules.max_len,
            "regex": self.rules.regex,
        }
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type,
            "required": self.required,
            "options": list(self.options),
            "helpText": self.help_text,
            "placeholder": self.placeholder,
            "rules": {k: v for k, v in rules.items() if v is not None},
        }


@dataclass
class Category:
    id: str
    name: str
    branch: CategoryBranch
    parent_id: Optional[str] = None
    description_template: Optional[str] = None
    form_schema: List[FieldSpec] = field(default_factory=list)
    is_active: bool = True

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class CategoryTree:
    """
    Arena of categories keyed by id.

    Only two levels are populated in practice (branch roots and their
    services) but nothing here assumes that depth.
    """

    def __init__(self, categories: List[Category]):
        self._by_id: Dict[str, Category] = {c.id: c for c in categories}
        self._children: Optional[Dict[Optional[str], List[str]]] = None

    def _index(self) -> Dict[Optional[str], List[str]]:
        if self._children is None:
            children: Dict[Optional[str], List[str]] = {}
            for category in sorted(self._by_id.values(), key=lambda c: (c.branch, c.name)):
                # Orphans (parent missing from the arena) surface as roots
                parent = category.parent_id if category.parent_id in self._by_id else None
                children.setdefault(parent, []).append(category.id)
            self._children = children
        return self._children

    def get(self, category_id: str) -> Optional[Category]:
        return self._by_id.get(category_id)

    def roots(self) -> List[Category]:
        return [self._by_id[i] for i in self._index().get(None, [])]

    def children(self, category_id: str) -> List[Category]:
        return [self._by_id[i] for i in self._index().get(category_id, [])]

    def root_of(self, category_id: str) -> Optional[Category]:
        """Walk parent links up to the branch root; stops on a cycle."""
        seen = set()
        current = self._by_id.get(category_id)
        while current is not None and current.parent_id in self._by_id and current.id not in seen:
            seen.add(current.id)
            current = self._by_id[current.parent_id]
        return current

    def to_nested(self) -> List[dict]:
        """Roots with their descendants, for API rendering."""
        def build(category: Category, path: frozenset) -> dict:
            return {
                "id": category.id,
                "name": category.name,
                "branch": category.branch,
                "parent_id": category.parent_id,
                "description_template": category.description_template,
                "form_schema": [spec.to_dict() for spec in category.form_schema],
                "children": [
                    build(child, path | {child.id})
                    for child in self.children(category.id)
                    if child.id not in path
                ],
            }

        return [build(root, frozenset({root.id})) for root in self.roots()]


class TicketRecord(Protocol):
    """Attributes of a ticket the state machine reads and writes."""
    id: str
    status: str
    priority: str
    closed_at: Optional[datetime]
    updated_at: datetime
