from typing import Any, Dict, List, Optional
import logging

from makercost.schemas.catalog import MaterialUsage, UserMaterial
from makercost.schemas.pricing import CostMaterial, MaterialCategory
from makercost.stores.base import CollectionStore

logger = logging.getLogger(__name__)


class MaterialsStore(CollectionStore[UserMaterial]):
    """The user's material catalog and stock levels"""

    name = "user-materials"
    entity = "materials"
    model = UserMaterial

    def _touch(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        return {**updates, "last_updated": self.clock.now()}

    def add_material(self, data: Any) -> UserMaterial:
        if not isinstance(data, dict):
            data = data.model_dump()
        data = {**data, "id": data.get("id") or self.clock.new_id(), "last_updated": self.clock.now()}
        return self.add(data)

    def update_material(self, material_id: str, updates: Dict[str, Any]) -> Optional[UserMaterial]:
        return self.update(material_id, updates)

    def remove_material(self, material_id: str) -> bool:
        return self.remove(material_id)

    # ============= QUERIES =============

    def search(self, query: str) -> List[UserMaterial]:
        """Case-insensitive match on name, comments, category or supplier"""
        needle = query.strip().lower()
        if not needle:
            return self.all()
        return [
            m for m in self.all()
            if needle in m.name.lower()
            or needle in m.comments.lower()
            or needle in m.category.lower()
            or needle in m.supplier.lower()
        ]

    def filter_by_category(self, category: str) -> List[UserMaterial]:
        return [m for m in self.all() if m.category == category]

    def filter_by_type(self, material_type: MaterialCategory) -> List[UserMaterial]:
        return [m for m in self.all() if m.material_type == material_type]

    def low_stock(self) -> List[UserMaterial]:
        return [m for m in self.all() if m.in_stock and m.current_stock <= m.min_stock]

    def total_value(self) -> float:
        return sum((m.cost_per_unit * m.current_stock for m in self._items.values()), 0.0)

    def available_for_calculator(self, material_type: Optional[MaterialCategory] = None) -> List[UserMaterial]:
        materials = [m for m in self.all() if m.in_stock and m.current_stock > 0]
        if material_type:
            materials = [m for m in materials if m.material_type == material_type]
        return materials

    def to_cost_material(self, material_id: str, quantity_used: float = 0) -> Optional[CostMaterial]:
        material = self._items.get(material_id)
        return material.to_cost_material(quantity_used) if material else None

    # ============= INVENTORY =============

    def record_usage(
        self,
        material_id: str,
        project_id: str,
        project_name: str,
        quantity_used: float
    ) -> Optional[UserMaterial]:
        """Deduct used stock (never below zero) and append a usage history entry"""
        material = self._items.get(material_id)
        if material is None:
            logger.warning(f"Inventory usage for unknown material {material_id} ignored")
            return None

        usage = MaterialUsage(
            id=self.clock.new_id(),
            project_id=project_id,
            project_name=project_name,
            quantity_used=quantity_used,
            date_used=self.clock.now(),
            cost_at_time=material.cost_per_unit,
        )
        new_stock = max(0.0, material.current_stock - quantity_used)
        return self.update(material_id, {
            "current_stock": new_stock,
            "usage_history": [*material.usage_history, usage],
        })
