"""
The project currently open in the calculator.

Mutations are local only; the autosave controller turns this state into a
draft quote. ``save_to_database`` is still available for explicit saves.
"""
from typing import Any, Dict, Optional
from datetime import datetime

from makercost.schemas.pricing import (
    CostContext,
    CostMaterial,
    Currency,
    LaborInput,
    Machine,
    OverheadAllocation,
    PricingBreakdown,
    PricingProject,
    SalePriceInfo,
    VATSettings,
)
from makercost.services.pricing_engine import calculate_product_breakdown
from makercost.stores.base import SingletonStore
from makercost.utils.validators import apply_updates, has_minimal_content, validate_model

CONTENT_EXCLUDE = {"created_at", "updated_at"}


class ProjectStore(SingletonStore[PricingProject]):
    name = "makercost-calculator"
    entity = "projects"
    model = PricingProject

    def _set(self, value: PricingProject) -> PricingProject:
        self._value = value.model_copy(update={"updated_at": self.clock.now()})
        self._commit()
        return self._value.model_copy(deep=True)

    def _replace_list(self, field: str, items) -> PricingProject:
        return self._set(self._value.model_copy(update={field: items}))

    def content(self) -> Dict[str, Any]:
        """Project inputs without timestamps, for change detection"""
        return self._value.model_dump(mode="json", exclude=CONTENT_EXCLUDE)

    def has_minimal_content(self) -> bool:
        project = self._value
        return has_minimal_content(
            project.project_name,
            project.client_name,
            len(project.materials),
            len(project.machines),
            project.labor.hours,
            project.sale_price.amount,
        )

    def new_project(self, currency: Optional[Currency] = None) -> PricingProject:
        now = self.clock.now()
        project = PricingProject(
            id=self.clock.new_id(),
            currency=currency or self._value.currency,
            created_at=now,
            updated_at=now,
        )
        return self._set(project)

    def set_project_info(
        self,
        project_name: Optional[str] = None,
        client_name: Optional[str] = None,
        product_name: Optional[str] = None,
        currency: Optional[Currency] = None,
        delivery_date: Optional[datetime] = None,
        payment_terms: Optional[str] = None
    ) -> PricingProject:
        updates = {
            key: value for key, value in {
                "project_name": project_name,
                "client_name": client_name,
                "product_name": product_name,
                "currency": currency,
                "delivery_date": delivery_date,
                "payment_terms": payment_terms,
            }.items()
            if value is not None
        }
        return self.update(updates)

    # ============= MATERIALS =============

    def add_material(self, material: Any) -> CostMaterial:
        material = validate_model(CostMaterial, material)
        self._replace_list("materials", [*self._value.materials, material])
        return material.model_copy(deep=True)

    def update_material(self, material_id: str, updates: Dict[str, Any]) -> Optional[CostMaterial]:
        materials = list(self._value.materials)
        for index, material in enumerate(materials):
            if material.id == material_id:
                materials[index] = apply_updates(material, updates)
                self._replace_list("materials", materials)
                return materials[index].model_copy(deep=True)
        return None

    def remove_material(self, material_id: str) -> bool:
        materials = [m for m in self._value.materials if m.id != material_id]
        if len(materials) == len(self._value.materials):
            return False
        self._replace_list("materials", materials)
        return True

    # ============= MACHINES =============

    def add_machine(self, machine: Any) -> Machine:
        machine = validate_model(Machine, machine)
        self._replace_list("machines", [*self._value.machines, machine])
        return machine.model_copy(deep=True)

    def update_machine(self, machine_id: str, updates: Dict[str, Any]) -> Optional[Machine]:
        machines = list(self._value.machines)
        for index, machine in enumerate(machines):
            if machine.id == machine_id:
                machines[index] = apply_updates(machine, updates)
                self._replace_list("machines", machines)
                return machines[index].model_copy(deep=True)
        return None

    def remove_machine(self, machine_id: str) -> bool:
        machines = [m for m in self._value.machines if m.id != machine_id]
        if len(machines) == len(self._value.machines):
            return False
        self._replace_list("machines", machines)
        return True

    # ============= COST PARAMETERS =============

    def set_labor(self, labor: Any) -> PricingProject:
        return self.update({"labor": validate_model(LaborInput, labor)})

    def set_overhead(self, overhead: Any) -> PricingProject:
        return self.update({"overhead": validate_model(OverheadAllocation, overhead)})

    def set_sale_price(self, sale_price: Any) -> PricingProject:
        return self.update({"sale_price": validate_model(SalePriceInfo, sale_price)})

    def set_vat_settings(self, vat_settings: Any) -> PricingProject:
        return self.update({"vat_settings": validate_model(VATSettings, vat_settings)})

    def calculate(self, context: Optional[CostContext] = None) -> PricingBreakdown:
        return calculate_product_breakdown(self._value.to_product(product_id=self._value.id), context)
