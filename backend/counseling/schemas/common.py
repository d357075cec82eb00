"""
Schémas Pydantic partagés : base camelCase, enveloppe de réponse et pagination.

Toutes les réponses suivent `{"success": bool, "message"?: str, "data"?: {...}}`.
Les clés JSON sont en camelCase ; les requêtes acceptent aussi le snake_case.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None


class Pagination(CamelModel):
    current: int
    pages: int
    total: int
    limit: int


class Page(CamelModel, Generic[DataT]):
    """Résultat paginé d'une requête de liste."""
    records: List[DataT]
    pagination: Pagination


class FieldError(CamelModel):
    field: str
    message: str
