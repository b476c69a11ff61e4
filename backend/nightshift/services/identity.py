"""
filename -> canonical identity resolution

rules are plain data: an ordered list of (name, pattern) pairs where group 1 is
the identity token and group 2 is the extension. the first rule that matches
wins, so narrower rules must be listed before broader ones.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

PART_SUFFIX = re.compile(r'-(pt\d+)$', re.IGNORECASE)
KNOWN_EXTENSION = re.compile(r'\.(mp4|mkv)$', re.IGNORECASE)
UNHYPHENATED_ID = re.compile(r'^([A-Z]+)(\d+)$')


@dataclass(frozen=True)
class IdentityRule:
    name: str
    pattern: Pattern[str]

    @classmethod
    def compile(cls, name: str, pattern: str) -> "IdentityRule":
        return cls(name=name, pattern=re.compile(pattern, re.IGNORECASE))


@dataclass(frozen=True)
class Identity:
    identity: str  # e.g. VDO-001-pt1
    extension: str  # lowercase, no dot
    rule: str

    @property
    def cleaned_name(self) -> str:
        return f"{self.identity}.{self.extension}"


DEFAULT_RULES: List[IdentityRule] = [
    # standard: VDO-001 or VDO-001-pt1, optionally behind a "site@" prefix
    IdentityRule.compile(
        "standard",
        r'^.*?@?([A-Za-z0-9]{1,6}-[0-9]{1,5}(?:-[pP][tT]\d+)?)\.(mp4|mkv)$',
    ),
    # triple: site@XXX-YYY-1234 with a 4-9 digit tail
    IdentityRule.compile(
        "triple",
        r'^.*?@([A-Za-z0-9]+-[A-Za-z0-9]+-[0-9]{4,9}(?:-[pP][tT]\d+)?)\.(mp4|mkv)$',
    ),
]


def normalize_identity(raw_id: str) -> str:
    """
    uppercase the series token but keep the part marker lowercase
    vdo-001-PT1 -> VDO-001-pt1
    """
    suffix_match = PART_SUFFIX.search(raw_id)
    if not suffix_match:
        return raw_id.upper()
    suffix = suffix_match.group(1).lower()
    base = raw_id[:suffix_match.start()].upper()
    return f"{base}-{suffix}"


class IdentityResolver:
    def __init__(self, rules: Optional[Sequence[IdentityRule]] = None):
        self.rules = list(DEFAULT_RULES if rules is None else rules)

    def match(self, filename: str, default_extension: Optional[str] = None) -> Optional[Identity]:
        """
        run the rules in order and return the first match, or None

        default_extension is appended when the name carries no known extension,
        for inputs like csv rows or search terms that drop it
        """
        candidate = filename.strip()
        if default_extension and not KNOWN_EXTENSION.search(candidate):
            candidate = f"{candidate}.{default_extension}"

        for rule in self.rules:
            m = rule.pattern.match(candidate)
            if m:
                return Identity(
                    identity=normalize_identity(m.group(1)),
                    extension=m.group(2).lower(),
                    rule=rule.name,
                )
        return None

    def resolve(self, filename: str, default_extension: Optional[str] = None) -> Optional[str]:
        """return <IDENTITY>.<ext> or None when no rule matches"""
        identity = self.match(filename, default_extension=default_extension)
        return identity.cleaned_name if identity else None

    def resolve_identity(self, term: str) -> str:
        """
        bare identity for lookups: the normalized token when a rule matches,
        otherwise the uppercased term itself
        """
        identity = self.match(term, default_extension="mp4")
        if identity:
            return identity.identity
        return term.strip().upper()


def hyphenated_alternative(term: str) -> Optional[str]:
    """ABC123 -> ABC-123, for catalog codes typed without the hyphen"""
    m = UNHYPHENATED_ID.match(term)
    if not m:
        return None
    return f"{m.group(1)}-{m.group(2)}"


identity_resolver = IdentityResolver()
