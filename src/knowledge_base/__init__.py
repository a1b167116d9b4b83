"""Corporate-finance knowledge base: archetypes, keywords, deviations and worked problems."""

from .loader import (
    ArchetypeNotFoundError,
    KnowledgeBase,
    KnowledgeBaseError,
    load_knowledge_base,
)

__all__ = [
    "ArchetypeNotFoundError",
    "KnowledgeBase",
    "KnowledgeBaseError",
    "load_knowledge_base",
]
