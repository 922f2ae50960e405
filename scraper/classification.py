"""Keyword rules for inferring event category and department from a title."""
from typing import NamedTuple, Optional, Sequence, Tuple


class Rule(NamedTuple):
    """Label applied when any keyword appears in the text."""
    keywords: Tuple[str, ...]
    label: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


def classify(text: str, rules: Sequence[Rule], default: Optional[str] = None) -> Optional[str]:
    """
    Return the label of the first rule whose keywords appear in text.

    Matching is case-insensitive; rule order is priority order.

    Args:
        text: Text to classify, usually an event title
        rules: Ordered rules
        default: Label when nothing matches

    Returns:
        Matched label or default
    """
    lowered = text.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule.label
    return default


HOLIDAY_KEYWORDS = (
    'holiday', 'independence day', 'memorial day', 'labor day', 'veterans day',
    'thanksgiving', 'christmas', 'new year', 'juneteenth', 'columbus day',
    'indigenous peoples', 'patriots day', "presidents' day", 'presidents day',
    'martin luther king',
)

CATEGORY_RULES = [
    Rule(('hearing',), 'hearing'),
    Rule(('board', 'committee', 'commission', 'meeting'), 'meeting'),
    Rule(HOLIDAY_KEYWORDS, 'holiday'),
]

TOWN_CATEGORY_RULES = [
    Rule(('school',), 'education'),
    Rule(('library',), 'education'),
    Rule(('recreation',), 'recreation'),
    Rule(('cultural',), 'arts'),
] + CATEGORY_RULES

TOWN_DEPARTMENT_RULES = [
    Rule(('board of assessors', 'assessor'), 'assessors'),
    Rule(('select board', 'selectmen', 'selectboard'), 'selectmen'),
    Rule(('planning',), 'planning'),
    Rule(('school',), 'school'),
    Rule(('health',), 'health'),
    Rule(('zba', 'zoning'), 'zoning'),
    Rule(('housing',), 'housing'),
    Rule(('finance',), 'finance'),
    Rule(('recreation',), 'recreation'),
    Rule(('library',), 'library'),
    Rule(('conservation',), 'conservation'),
    Rule(('cultural',), 'cultural'),
]

SCHOOL_CATEGORY_RULES = [
    Rule(('no school', 'vacation', 'early release'), 'school-calendar'),
    Rule(('concert', 'musical', 'play', 'theater', 'theatre'), 'performance'),
    Rule(('parent', 'pto', 'open house', 'conference'), 'family'),
] + CATEGORY_RULES

ATHLETICS_CATEGORY_RULES = [
    Rule(('soccer',), 'soccer'),
    Rule(('football',), 'football'),
    Rule(('basketball',), 'basketball'),
    Rule(('hockey',), 'hockey'),
    Rule(('lacrosse',), 'lacrosse'),
    Rule(('baseball', 'softball'), 'baseball'),
    Rule(('cross country', 'track'), 'track'),
    Rule(('swim', 'dive'), 'swimming'),
]

ARTS_CATEGORY_RULES = [
    Rule(('workshop', 'class', 'lesson'), 'workshop'),
    Rule(('concert', 'performance', 'recital', 'show'), 'performance'),
    Rule(('exhibit', 'gallery', 'opening', 'reception'), 'arts'),
]

LIBRARY_CATEGORY_RULES = [
    Rule(('story', 'storytime', 'toddler', 'kids', 'children'), 'children'),
    Rule(('teen',), 'teens'),
    Rule(('book club', 'author', 'reading'), 'literature'),
] + CATEGORY_RULES

COMMUNITY_CATEGORY_RULES = [
    Rule(('market', 'fair', 'festival'), 'market'),
    Rule(('family', 'kids', 'children', 'parent'), 'family'),
    Rule(('concert', 'music', 'performance'), 'performance'),
] + CATEGORY_RULES
