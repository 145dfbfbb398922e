import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from supabase import create_client

from .schemas import ComplianceRule, RestrictedCountry, RestrictedItem

logger = logging.getLogger(__name__)

RULES_TABLE = "compliance_rules"
COUNTRIES_TABLE = "restricted_countries"
ITEMS_TABLE = "restricted_items"

M = TypeVar("M", bound=BaseModel)
RowId = Union[int, str]


class StoreError(RuntimeError):
    """The rule store could not be read or written."""


@dataclass(frozen=True)
class RuleSnapshot:
    rules: Tuple[ComplianceRule, ...]
    restricted_countries: Tuple[RestrictedCountry, ...]
    restricted_items: Tuple[RestrictedItem, ...]


def _parse_rows(model: Type[M], rows: Iterable[Dict[str, Any]], table: str) -> List[M]:
    out: List[M] = []
    for row in rows or []:
        try:
            out.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s row %r: %s", table, row.get("id"), exc.errors())
    return out


class RuleStore(ABC):
    """Read side used by the evaluator plus the admin writes."""

    @abstractmethod
    def fetch_active_rules(self) -> List[ComplianceRule]: ...

    @abstractmethod
    def fetch_restricted_countries(self) -> List[RestrictedCountry]: ...

    @abstractmethod
    def fetch_restricted_items(self) -> List[RestrictedItem]: ...

    @abstractmethod
    def list_rules(self) -> List[ComplianceRule]: ...

    @abstractmethod
    def create_rule(self, row: Dict[str, Any]) -> ComplianceRule: ...

    @abstractmethod
    def delete_rule(self, rule_id: RowId) -> bool: ...

    @abstractmethod
    def list_restricted_items(self) -> List[RestrictedItem]: ...

    @abstractmethod
    def create_restricted_item(self, row: Dict[str, Any]) -> RestrictedItem: ...

    @abstractmethod
    def delete_restricted_item(self, item_id: RowId) -> bool: ...

    def snapshot(self) -> RuleSnapshot:
        return RuleSnapshot(
            rules=tuple(self.fetch_active_rules()),
            restricted_countries=tuple(self.fetch_restricted_countries()),
            restricted_items=tuple(self.fetch_restricted_items()),
        )


# ---------------------------
# Supabase (hosted Postgres)
# ---------------------------

class SupabaseRuleStore(RuleStore):
    def __init__(self, client):
        self.client = client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as exc:
            logger.exception("Supabase %s failed", action)
            raise StoreError(f"{action} failed") from exc

    def fetch_active_rules(self) -> List[ComplianceRule]:
        resp = self._execute(
            self.client.table(RULES_TABLE).select("*").eq("is_active", True),
            "fetch active rules",
        )
        rules = _parse_rows(ComplianceRule, resp.data, RULES_TABLE)
        logger.debug("Fetched %d active rules", len(rules))
        return rules

    def fetch_restricted_countries(self) -> List[RestrictedCountry]:
        resp = self._execute(
            self.client.table(COUNTRIES_TABLE).select("*"),
            "fetch restricted countries",
        )
        return _parse_rows(RestrictedCountry, resp.data, COUNTRIES_TABLE)

    def fetch_restricted_items(self) -> List[RestrictedItem]:
        resp = self._execute(self.client.table(ITEMS_TABLE).select("*"), "fetch restricted items")
        return _parse_rows(RestrictedItem, resp.data, ITEMS_TABLE)

    def list_restricted_items(self) -> List[RestrictedItem]:
        resp = self._execute(
            self.client.table(ITEMS_TABLE).select("*").order("created_at", desc=True),
            "list restricted items",
        )
        return _parse_rows(RestrictedItem, resp.data, ITEMS_TABLE)

    def list_rules(self) -> List[ComplianceRule]:
        resp = self._execute(
            self.client.table(RULES_TABLE).select("*").order("created_at", desc=True),
            "list rules",
        )
        return _parse_rows(ComplianceRule, resp.data, RULES_TABLE)

    def create_rule(self, row: Dict[str, Any]) -> ComplianceRule:
        resp = self._execute(self.client.table(RULES_TABLE).insert(row), "create rule")
        if not resp.data:
            raise StoreError("create rule returned no row")
        return ComplianceRule.model_validate(resp.data[0])

    def delete_rule(self, rule_id: RowId) -> bool:
        resp = self._execute(
            self.client.table(RULES_TABLE).delete().eq("id", rule_id), "delete rule"
        )
        return bool(resp.data)

    def create_restricted_item(self, row: Dict[str, Any]) -> RestrictedItem:
        resp = self._execute(self.client.table(ITEMS_TABLE).insert(row), "create restricted item")
        if not resp.data:
            raise StoreError("create restricted item returned no row")
        return RestrictedItem.model_validate(resp.data[0])

    def delete_restricted_item(self, item_id: RowId) -> bool:
        resp = self._execute(
            self.client.table(ITEMS_TABLE).delete().eq("id", item_id), "delete restricted item"
        )
        return bool(resp.data)


def supabase_store(url: str, key: str) -> SupabaseRuleStore:
    return SupabaseRuleStore(create_client(url, key))


# ---------------------------
# In-memory (tests, local dev)
# ---------------------------

class InMemoryRuleStore(RuleStore):
    def __init__(
        self,
        rules: Optional[Iterable[Union[ComplianceRule, Dict[str, Any]]]] = None,
        restricted_countries: Optional[Iterable[Union[RestrictedCountry, Dict[str, Any]]]] = None,
        restricted_items: Optional[Iterable[Union[RestrictedItem, Dict[str, Any]]]] = None,
    ):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.rules: List[ComplianceRule] = []
        self.restricted_countries = [
            RestrictedCountry.model_validate(c) for c in restricted_countries or []
        ]
        self.restricted_items: List[RestrictedItem] = []
        for r in rules or []:
            self.rules.append(self._with_id(ComplianceRule.model_validate(r), self.rules))
        for i in restricted_items or []:
            self.restricted_items.append(
                self._with_id(RestrictedItem.model_validate(i), self.restricted_items)
            )

    def _with_id(self, model: M, existing: List[M]) -> M:
        if getattr(model, "id", None) is not None:
            return model
        # skip ids already taken by seeded rows
        taken = {str(m.id) for m in existing}
        new_id = next(self._ids)
        while str(new_id) in taken:
            new_id = next(self._ids)
        return model.model_copy(update={"id": new_id})

    def fetch_active_rules(self) -> List[ComplianceRule]:
        return [r for r in self.rules if r.is_active]

    def fetch_restricted_countries(self) -> List[RestrictedCountry]:
        return list(self.restricted_countries)

    def fetch_restricted_items(self) -> List[RestrictedItem]:
        return list(self.restricted_items)

    def list_restricted_items(self) -> List[RestrictedItem]:
        return list(reversed(self.restricted_items))

    def list_rules(self) -> List[ComplianceRule]:
        return list(reversed(self.rules))

    def create_rule(self, row: Dict[str, Any]) -> ComplianceRule:
        with self._lock:
            rule = self._with_id(ComplianceRule.model_validate(row), self.rules)
            self.rules.append(rule)
        return rule

    def delete_rule(self, rule_id: RowId) -> bool:
        with self._lock:
            before = len(self.rules)
            self.rules = [r for r in self.rules if str(r.id) != str(rule_id)]
            return len(self.rules) != before

    def create_restricted_item(self, row: Dict[str, Any]) -> RestrictedItem:
        with self._lock:
            item = self._with_id(RestrictedItem.model_validate(row), self.restricted_items)
            self.restricted_items.append(item)
        return item

    def delete_restricted_item(self, item_id: RowId) -> bool:
        with self._lock:
            before = len(self.restricted_items)
            self.restricted_items = [i for i in self.restricted_items if str(i.id) != str(item_id)]
            return len(self.restricted_items) != before
