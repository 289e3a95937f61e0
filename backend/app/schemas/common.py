"""
Briques communes aux schémas : sérialisation camelCase et pagination.
"""

import math
from typing import Dict

from fastapi import Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Champs Python en snake_case, JSON en camelCase (les deux acceptés en entrée)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(BaseModel):
    message: str


class PageParams:
    """Paramètres de requête page / limit."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Numéro de page (à partir de 1)"),
        limit: int = Query(20, ge=1, le=100, description="Éléments par page"),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination(page: int, limit: int, total: int, entity: str) -> Dict[str, int]:
    """Enveloppe {currentPage, totalPages, total<Entity>}."""
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        f"total{entity}": total,
    }
