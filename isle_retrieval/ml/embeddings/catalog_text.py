"""
Embedding text for catalog entries.
"""

from ...models.place import CatalogEntry

DESCRIPTION_CHARS = 500
MAX_TAGS = 10
MAX_HIGHLIGHTS = 5


def build_embedding_text(entry: CatalogEntry) -> str:
    """
    Text embedded for an entry by the offline builder.

    Name, category, subcategory, descriptions, district/island, leading tags and
    highlights, plus rating and promotion markers; lower-cased.
    """
    parts = [entry.name, entry.category.replace("_", " ")]
    if entry.subcategory:
        parts.append(entry.subcategory)
    if entry.short_description:
        parts.append(entry.short_description)
    if entry.description:
        parts.append(entry.description[:DESCRIPTION_CHARS])
    if entry.location.district:
        parts.append(entry.location.district)
    if entry.location.island:
        parts.append(entry.location.island)
    if entry.tags:
        parts.append(", ".join(entry.tags[:MAX_TAGS]))
    if entry.highlights:
        parts.append(", ".join(entry.highlights[:MAX_HIGHLIGHTS]))
    if entry.rating.overall >= 4.5:
        parts.append("highly rated")
    if entry.is_featured:
        parts.append("featured")
    if entry.is_premium:
        parts.append("premium")

    return " ".join(" ".join(parts).split()).lower()
