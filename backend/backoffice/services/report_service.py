from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from backoffice.models.document import MENU
from backoffice.repositories.document_repo import DocumentRepository


def _sold(item: dict) -> int:
    return int(item.get("sold") or 0)


def _revenue(item: dict) -> float:
    return float(item.get("price") or 0) * _sold(item)


class ReportService:
    """Sales figures derived from the ``sold`` counters on menu items."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository(db)

    def top_sales(self, limit: int = 5) -> List[dict]:
        items = sorted(self.repo.list(MENU), key=_sold, reverse=True)
        return [
            {
                "id": it["id"],
                "name": it.get("name"),
                "category": it.get("category"),
                "sold": _sold(it),
                "revenue": round(_revenue(it), 2),
            }
            for it in items[:limit]
        ]

    def sales_summary(self) -> Dict:
        items = self.repo.list(MENU)
        by_category = defaultdict(lambda: {"units_sold": 0, "revenue": 0.0})
        for it in items:
            bucket = by_category[it.get("category") or "Uncategorized"]
            bucket["units_sold"] += _sold(it)
            bucket["revenue"] += _revenue(it)
        return {
            "item_count": len(items),
            "units_sold": sum(_sold(it) for it in items),
            "revenue": round(sum(_revenue(it) for it in items), 2),
            "by_category": {
                name: {"units_sold": b["units_sold"], "revenue": round(b["revenue"], 2)}
                for name, b in sorted(by_category.items())
            },
        }
