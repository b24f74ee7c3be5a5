"""
Measurement units offered for materials, grouped per unit system.
"""
from collections import OrderedDict
from typing import Dict, List, Literal

UnitSystem = Literal["metric", "imperial"]

METRIC_UNITS: List[Dict[str, str]] = [
    {"value": "pieces", "label": "Pieces", "category": "quantity"},
    {"value": "sheets", "label": "Sheets", "category": "quantity"},
    {"value": "grams", "label": "Grams", "category": "weight"},
    {"value": "kilograms", "label": "Kilograms", "category": "weight"},
    {"value": "millimeters", "label": "Millimeters", "category": "length"},
    {"value": "centimeters", "label": "Centimeters", "category": "length"},
    {"value": "meters", "label": "Meters", "category": "length"},
    {"value": "linear meters", "label": "Linear Meters", "category": "length"},
    {"value": "square meters", "label": "Square Meters", "category": "area"},
    {"value": "milliliters", "label": "Milliliters", "category": "volume"},
    {"value": "liters", "label": "Liters", "category": "volume"},
    {"value": "cubic meters", "label": "Cubic Meters", "category": "volume"},
    {"value": "custom", "label": "Custom Unit", "category": "other"},
]

IMPERIAL_UNITS: List[Dict[str, str]] = [
    {"value": "pieces", "label": "Pieces", "category": "quantity"},
    {"value": "sheets", "label": "Sheets", "category": "quantity"},
    {"value": "ounces", "label": "Ounces", "category": "weight"},
    {"value": "pounds", "label": "Pounds", "category": "weight"},
    {"value": "inches", "label": "Inches", "category": "length"},
    {"value": "feet", "label": "Feet", "category": "length"},
    {"value": "yards", "label": "Yards", "category": "length"},
    {"value": "linear feet", "label": "Linear Feet", "category": "length"},
    {"value": "square feet", "label": "Square Feet", "category": "area"},
    {"value": "fluid ounces", "label": "Fluid Ounces", "category": "volume"},
    {"value": "pints", "label": "Pints", "category": "volume"},
    {"value": "quarts", "label": "Quarts", "category": "volume"},
    {"value": "gallons", "label": "Gallons", "category": "volume"},
    {"value": "cubic feet", "label": "Cubic Feet", "category": "volume"},
    {"value": "custom", "label": "Custom Unit", "category": "other"},
]

UNIT_EQUIVALENTS = {
    # Metric to Imperial
    "grams": "ounces",
    "kilograms": "pounds",
    "meters": "feet",
    "centimeters": "inches",
    "millimeters": "inches",
    "milliliters": "fluid ounces",
    "liters": "quarts",
    "square meters": "square feet",
    "linear meters": "linear feet",
    "cubic meters": "cubic feet",
    # Imperial to Metric
    "ounces": "grams",
    "pounds": "kilograms",
    "feet": "meters",
    "inches": "centimeters",
    "yards": "meters",
    "fluid ounces": "milliliters",
    "pints": "liters",
    "quarts": "liters",
    "gallons": "liters",
    "square feet": "square meters",
    "linear feet": "linear meters",
    "cubic feet": "cubic meters",
}

UNIT_ABBREVIATIONS = {
    "pieces": "pcs",
    "grams": "g",
    "kilograms": "kg",
    "ounces": "oz",
    "pounds": "lbs",
    "sheets": "sheets",
    "meters": "m",
    "centimeters": "cm",
    "millimeters": "mm",
    "feet": "ft",
    "inches": "in",
    "yards": "yd",
    "milliliters": "ml",
    "liters": "L",
    "fluid ounces": "fl oz",
    "pints": "pt",
    "quarts": "qt",
    "gallons": "gal",
    "square meters": "m²",
    "square feet": "ft²",
    "linear meters": "m",
    "linear feet": "ft",
    "cubic meters": "m³",
    "cubic feet": "ft³",
    "custom": "custom",
}

_SHARED_UNITS = {"pieces", "sheets", "custom"}


def get_units_for_system(unit_system: UnitSystem) -> List[Dict[str, str]]:
    return METRIC_UNITS if unit_system == "metric" else IMPERIAL_UNITS


def get_grouped_units(unit_system: UnitSystem) -> Dict[str, List[Dict[str, str]]]:
    """Group a system's units by category, keeping list order"""
    groups: Dict[str, List[Dict[str, str]]] = OrderedDict()
    for unit in get_units_for_system(unit_system):
        groups.setdefault(unit["category"], []).append(unit)
    return groups


def get_equivalent_unit(unit: str, target_system: UnitSystem) -> str:
    """Get the closest unit in the target system (the unit itself if none)"""
    if unit in _SHARED_UNITS:
        return unit
    target_values = {u["value"] for u in get_units_for_system(target_system)}
    if unit in target_values:
        return unit
    return UNIT_EQUIVALENTS.get(unit, unit)


def format_unit_display(unit: str) -> str:
    return UNIT_ABBREVIATIONS.get(unit, unit)
