from typing import Any, Dict, Optional

from makercost.schemas.catalog import DashboardMachine
from makercost.schemas.pricing import Machine
from makercost.stores.base import CollectionStore, fingerprint

DEMO_MACHINE = {
    "id": "demo-cnc-router",
    "name": "CNC Router",
    "purchase_price": 25000,
    "depreciation_percentage": 20,
    "hours_per_year": 500,
    "maintenance_cost_per_year": 1000,
    "power_consumption": 5.5,
    "electricity_included_in_overhead": False,
}


class MachinesStore(CollectionStore[DashboardMachine]):
    """The user's machine catalog"""

    name = "machine-store"
    entity = "machines"
    model = DashboardMachine

    def _reset_state(self) -> None:
        super()._reset_state()
        demo = DashboardMachine(**DEMO_MACHINE)
        self._items[demo.id] = demo

    def default_fingerprints(self) -> Dict[str, str]:
        demo = DashboardMachine(**DEMO_MACHINE).model_dump(mode="json")
        return {demo["id"]: fingerprint(demo)}

    def add_machine(self, data: Any) -> DashboardMachine:
        if not isinstance(data, dict):
            data = data.model_dump()
        return self.add({**data, "id": data.get("id") or self.clock.new_id()})

    def update_machine(self, machine_id: str, updates: Dict[str, Any]) -> Optional[DashboardMachine]:
        return self.update(machine_id, updates)

    def remove_machine(self, machine_id: str) -> bool:
        return self.remove(machine_id)

    def to_calculator_machine(self, machine_id: str, usage_hours: float = 0) -> Optional[Machine]:
        machine = self._items.get(machine_id)
        return machine.to_calculator_machine(usage_hours) if machine else None
