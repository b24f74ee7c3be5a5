from makercost.stores.base import CollectionStore, LocalStore, SingletonStore, fingerprint
from makercost.stores.machines import MachinesStore
from makercost.stores.materials import MaterialsStore
from makercost.stores.projects import ProjectStore
from makercost.stores.quotes import QuoteStore
from makercost.stores.shop import ShopStore
from makercost.stores.subscription import SubscriptionStore

__all__ = [
    "CollectionStore",
    "LocalStore",
    "SingletonStore",
    "fingerprint",
    "MachinesStore",
    "MaterialsStore",
    "ProjectStore",
    "QuoteStore",
    "ShopStore",
    "SubscriptionStore",
]
