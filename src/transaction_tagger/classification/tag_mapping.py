from typing import Any, Dict, List, Optional

from transaction_tagger.classification import tags
from transaction_tagger.config.settings import ConfigLoader
from transaction_tagger.logging_setup import get_logger
from transaction_tagger.repositories.base import KeyValueStore, PersistenceError

logger = get_logger(__name__)

CUSTOM_MAPPING_KEY = "customTagMapping"

Mapping = Dict[str, Dict[str, str]]


class TagMappingStore:
    """
    User-editable `category x subcategory -> tag` table.

    Built-in defaults come from `tag_mapping.json`; user overrides are kept in
    the key-value store and win over defaults for the same category. Lookups
    ignore case.

    Usage:
        mapping = TagMappingStore(store)
        mapping.update_mapping("To your accounts", "Savings", "Savings")
        mapping.get_tag("to your accounts", "savings")  # 'Savings'
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ):
        self.store = store
        if defaults is None:
            defaults = ConfigLoader.load_tag_mapping_config()
        self._defaults: Mapping = defaults.get("mapping", {})
        self._custom: Mapping = self._load_custom()

    def _load_custom(self) -> Mapping:
        if self.store is None:
            return {}
        try:
            return self.store.load(CUSTOM_MAPPING_KEY) or {}
        except PersistenceError:
            logger.exception("Error loading custom tag mapping")
            return {}

    def as_dict(self) -> Mapping:
        """Defaults merged with custom mappings, per subcategory"""
        merged = {category: dict(subs) for category, subs in self._defaults.items()}
        for category, subcategories in self._custom.items():
            merged.setdefault(category, {}).update(subcategories)
        return merged

    def get_tag(self, category: Optional[str], subcategory: Optional[str]) -> Optional[str]:
        """
        Look up the tag for a category/subcategory pair.

        Returns:
            The mapped tag, or None when either part is missing or unmapped
        """
        if not category or not subcategory:
            return None

        category_lower = category.strip().lower()
        subcategory_lower = subcategory.strip().lower()

        # Custom entries first so they win regardless of key casing
        for table in (self._custom, self._defaults):
            for mapped_category, subcategories in table.items():
                if mapped_category.lower() != category_lower:
                    continue
                for mapped_subcategory, tag in subcategories.items():
                    if mapped_subcategory.lower() == subcategory_lower and tag:
                        return tag
        return None

    def update_mapping(self, category: str, subcategory: str, tag: str) -> None:
        """Add or replace one custom mapping and persist it (best-effort)"""
        self._custom.setdefault(category, {})[subcategory] = tags.canonical_tag(tag)
        if self.store is None:
            return
        try:
            self.store.persist(CUSTOM_MAPPING_KEY, self._custom)
        except PersistenceError:
            logger.exception("Error saving custom tag mapping")

    def available_categories(self) -> List[str]:
        return list(self.as_dict().keys())

    def subcategories_for(self, category: str) -> List[str]:
        for mapped_category, subcategories in self.as_dict().items():
            if mapped_category.lower() == (category or "").lower():
                return list(subcategories.keys())
        return []

    def available_tags(self) -> List[str]:
        """Every tag used by a mapping plus the standard tags, sorted"""
        found = set(tags.STANDARD_TAGS)
        for subcategories in self.as_dict().values():
            found.update(tag for tag in subcategories.values() if tag)
        return sorted(found)

    def __repr__(self) -> str:
        return f"TagMappingStore({len(self.as_dict())} categories)"
