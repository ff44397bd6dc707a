from __future__ import annotations

from typing import Literal

TypeCategory = Literal["UTILITY", "GENERATOR", "TRANSFORMER", "DISTRIBUTION", "END_EQUIPMENT"]

_CONVERGENCE_MARKERS = ("UTILITY", "GEN", "MV-SWGR")
_DISTRIBUTION_SWITCH_MARKERS = ("MDS",)
_SWITCHGEAR_MARKERS = ("MDS", "SWGR", "SWITCHGEAR")
_CRITICAL_PANEL_MARKERS = ("CUPP",)


def _upper(value: str | None) -> str:
    return (value or "").upper()


def type_prefix(equipment_type: str | None) -> str:
    if not equipment_type:
        return ""
    return equipment_type.split(":")[0].strip().upper()


def is_power_storage(equipment_type: str | None, name: str | None = None) -> bool:
    return "UPS" in _upper(equipment_type) or "ups" in (name or "").lower()


def is_distribution_switch(equipment_type: str | None) -> bool:
    upper = _upper(equipment_type)
    return any(marker in upper for marker in _DISTRIBUTION_SWITCH_MARKERS)


def is_switchgear(equipment_type: str | None) -> bool:
    upper = _upper(equipment_type)
    return any(marker in upper for marker in _SWITCHGEAR_MARKERS)


def is_critical_panel(equipment_type: str | None) -> bool:
    upper = _upper(equipment_type)
    return any(marker in upper for marker in _CRITICAL_PANEL_MARKERS)


def is_convergence_point(equipment_type: str | None) -> bool:
    upper = _upper(equipment_type)
    return any(marker in upper for marker in _CONVERGENCE_MARKERS)


def categorize_type(equipment_type: str | None) -> TypeCategory:
    upper = _upper(equipment_type)
    if "UTILITY" in upper or "PADMOUNT" in upper or "PAD MOUNT" in upper:
        return "UTILITY"
    if any(marker in upper for marker in _SWITCHGEAR_MARKERS) or "UPS" in upper:
        return "DISTRIBUTION"
    if "TX" in upper or "TRANSFORMER" in upper or "XFMR" in upper:
        return "TRANSFORMER"
    if "GEN" in upper:
        return "GENERATOR"
    return "END_EQUIPMENT"
