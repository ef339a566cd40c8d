"""
SMS Template Engine - Lookup, Rendering and Validation

This module provides:
- Template lookup by (key, language) with an injected cache
- Fallback to the default language when a localized row is missing
- Placeholder replacement: {{variable}}
- Variable validation (missing / extra)
- Upsert with cache refresh, listing helpers and default template seeding

Rendering never raises. Gaps between the data and the declared variables are
reported by validate_template_data() and logged, not thrown.
"""

import re
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple
from dataclasses import dataclass, field

from .default_templates import DEFAULT_TEMPLATES
from .schema import DEFAULT_LANGUAGE, SMSLanguage, TemplateData, TemplateValue

logger = logging.getLogger(__name__)


PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}')


class TemplateSaveError(Exception):
    """Raised when a template cannot be persisted."""


# ==================== DATA CLASSES ====================

@dataclass
class SMSTemplate:
    """A stored SMS template row."""
    key: str
    language: str
    content: str
    variables: List[str] = field(default_factory=list)
    category: str = "appointment"
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def cache_key(self) -> str:
        return template_cache_key(self.key, self.language)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SMSTemplate":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            key=row["key"],
            language=row["language"],
            content=row["content"],
            variables=list(row.get("variables") or []),
            category=row.get("category") or "appointment",
            is_active=bool(row.get("is_active", True)),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def placeholders(self) -> List[str]:
        """Placeholder names in content order, without duplicates."""
        seen: List[str] = []
        for name in PLACEHOLDER_PATTERN.findall(self.content):
            if name not in seen:
                seen.append(name)
        return seen

    def placeholder_mismatch(self) -> Tuple[List[str], List[str]]:
        """
        Compare content placeholders with the declared variable list.

        Returns (undeclared, unused): placeholders missing from `variables`,
        and declared variables that never appear in the content.
        """
        found = self.placeholders()
        undeclared = [name for name in found if name not in self.variables]
        unused = [name for name in self.variables if name not in found]
        return undeclared, unused

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "language": self.language,
            "content": self.content,
            "variables": list(self.variables),
            "category": self.category,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class TemplateValidationResult:
    """Result of checking template data against declared variables"""
    valid: bool
    missing_variables: List[str]
    extra_variables: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "missing_variables": self.missing_variables,
            "extra_variables": self.extra_variables,
        }


@dataclass
class TemplateTestResult:
    success: bool
    formatted_message: Optional[str] = None
    error: Optional[str] = None


# ==================== CACHE ====================

def template_cache_key(key: str, language: str) -> str:
    return f"{key}_{language}"


class TemplateCache(Protocol):
    def get(self, key: str) -> Optional[SMSTemplate]: ...

    def set(self, key: str, template: SMSTemplate) -> None: ...


class InMemoryTemplateCache:
    """
    Process-local template cache.

    Entries are only replaced by a later set() (template upsert); there is no
    expiry and no locking.
    """

    def __init__(self):
        self._entries: Dict[str, SMSTemplate] = {}

    def get(self, key: str) -> Optional[SMSTemplate]:
        return self._entries.get(key)

    def set(self, key: str, template: SMSTemplate) -> None:
        self._entries[key] = template

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullTemplateCache:
    """Cache that never stores anything."""

    def get(self, key: str) -> Optional[SMSTemplate]:
        return None

    def set(self, key: str, template: SMSTemplate) -> None:
        return None


# Shared by every request in this process
default_template_cache = InMemoryTemplateCache()


# ==================== VALUE FORMATTING ====================

def stringify_template_value(value: TemplateValue) -> str:
    """
    Convert a template variable to the text inserted into the message.

    Checked in order: None, bool, datetime, date, time, float/Decimal;
    everything else goes through str().
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, (float, Decimal)):
        return f"{value:.2f}"
    return str(value)


# ==================== TEMPLATE ENGINE ====================

class SMSTemplateEngine:
    """
    SMS template engine.

    The store is any object offering the template half of SMSRepository:
    fetch_template, upsert_template, list_templates_by_category and
    list_template_keys.

    Usage:
        engine = SMSTemplateEngine(SMSRepository(db))
        template = await engine.get_template_with_fallback('appointment_reminder', 'es')
        text = engine.format_template(template, {'time': '10:00', ...})
    """

    def __init__(
        self,
        store,
        cache: Optional[TemplateCache] = None,
        default_language: str = DEFAULT_LANGUAGE
    ):
        self.store = store
        self.cache = cache if cache is not None else default_template_cache
        self.default_language = default_language

    # ---------- lookup ----------

    async def get_template(self, key: str, language: str) -> Optional[SMSTemplate]:
        """Get an active template by key and language, cache first."""
        cache_key = template_cache_key(key, language)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        row = await self.store.fetch_template(key, language)
        if not row:
            return None

        template = SMSTemplate.from_row(row)
        self.cache.set(cache_key, template)
        return template

    async def get_template_with_fallback(self, key: str, language: str) -> Optional[SMSTemplate]:
        """
        Get a template in the requested language, else in the default language.

        Returns None only when neither variant exists.
        """
        template = await self.get_template(key, language)
        if template is not None:
            return template

        if language == self.default_language:
            return None

        logger.info(f"Template {key} has no '{language}' variant, falling back to '{self.default_language}'")
        return await self.get_template(key, self.default_language)

    async def get_templates_by_category(self, category: str, language: str) -> List[SMSTemplate]:
        rows = await self.store.list_templates_by_category(category, language)
        return [SMSTemplate.from_row(row) for row in rows]

    async def get_template_keys(self) -> List[str]:
        """Unique keys of active templates, sorted."""
        keys = await self.store.list_template_keys()
        return sorted(set(keys))

    # ---------- rendering ----------

    def format_template(self, template: SMSTemplate, data: TemplateData) -> str:
        """
        Substitute every {{name}} for each name present in `data`.

        Placeholders without data are left as-is.
        """
        content = template.content

        for name, value in data.items():
            pattern = re.compile(r'\{\{\s*' + re.escape(name) + r'\s*\}\}')
            replacement = stringify_template_value(value)
            content = pattern.sub(lambda _match: replacement, content)

        missing = [variable for variable in template.variables if variable not in data]
        if missing:
            logger.warning(f"Missing variables in template {template.key} ({template.language}): {missing}")

        return content

    def validate_template_data(self, template: SMSTemplate, data: TemplateData) -> TemplateValidationResult:
        """
        Check supplied data against the declared variables.

        Only missing variables make the data invalid; extra keys are reported
        for information.
        """
        missing = [variable for variable in template.variables if variable not in data]
        extra = [name for name in data.keys() if name not in template.variables]

        return TemplateValidationResult(
            valid=not missing,
            missing_variables=missing,
            extra_variables=extra
        )

    async def test_template(self, key: str, language: str, data: TemplateData) -> TemplateTestResult:
        """Render a template with sample data, failing on missing variables."""
        template = await self.get_template(key, language)
        if template is None:
            return TemplateTestResult(success=False, error=f"Template {key} not found in {language}")

        validation = self.validate_template_data(template, data)
        if not validation.valid:
            return TemplateTestResult(
                success=False,
                error=f"Missing variables: {', '.join(validation.missing_variables)}"
            )

        return TemplateTestResult(success=True, formatted_message=self.format_template(template, data))

    # ---------- persistence ----------

    async def save_template(self, template: Mapping[str, Any]) -> SMSTemplate:
        """
        Create or update a template on its (key, language) pair.

        The cache entry is refreshed with the stored row.
        """
        if not template.get("key") or not template.get("language"):
            raise TemplateSaveError("Template key and language are required")

        values = dict(template)
        language = values["language"]
        if isinstance(language, SMSLanguage):
            values["language"] = language.value

        try:
            row = await self.store.upsert_template(values)
        except Exception as e:
            logger.error(f"Failed to save template {values['key']} ({values['language']}): {e}")
            raise TemplateSaveError(f"Failed to save template: {e}") from e

        saved = SMSTemplate.from_row(row)

        undeclared, unused = saved.placeholder_mismatch()
        if undeclared or unused:
            logger.warning(
                f"Template {saved.key} ({saved.language}) placeholders do not match variables: "
                f"undeclared={undeclared} unused={unused}"
            )

        self.cache.set(saved.cache_key, saved)
        return saved

    async def seed_default_templates(self) -> Dict[str, int]:
        """Insert any default template that has no active row yet."""
        created = 0
        existing = 0
        failed = 0

        for default in DEFAULT_TEMPLATES:
            try:
                if await self.get_template(default["key"], default["language"]) is not None:
                    existing += 1
                    continue
                await self.save_template({**default, "is_active": True})
                created += 1
                logger.info(f"Created default SMS template: {default['key']} ({default['language']})")
            except Exception as e:
                failed += 1
                logger.error(f"Failed to create template {default['key']}: {e}")

        return {"created": created, "existing": existing, "failed": failed}

    async def find_missing_translations(
        self,
        languages: Tuple[str, ...] = (SMSLanguage.ENGLISH.value, SMSLanguage.SPANISH.value)
    ) -> Dict[str, List[str]]:
        """Map each template key to the languages it has no active row for."""
        missing: Dict[str, List[str]] = {}
        for key in await self.get_template_keys():
            for language in languages:
                if await self.get_template(key, language) is None:
                    missing.setdefault(key, []).append(language)
        return missing
