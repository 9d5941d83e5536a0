"""Category preset registry."""

from networth.presets.registry import (
    CATEGORY_GROUPS,
    INVESTMENT_TYPES,
    PRESETS,
    QUICK_ACTIONS,
    CategoryId,
    Endpoint,
    EndpointKind,
    ExtraField,
    FieldLabels,
    InvestmentType,
    InvestmentTypeInfo,
    Preset,
    UnknownCategoryError,
    parse_category,
    preset_for,
)

__all__ = [
    "CATEGORY_GROUPS",
    "INVESTMENT_TYPES",
    "PRESETS",
    "QUICK_ACTIONS",
    "CategoryId",
    "Endpoint",
    "EndpointKind",
    "ExtraField",
    "FieldLabels",
    "InvestmentType",
    "InvestmentTypeInfo",
    "Preset",
    "UnknownCategoryError",
    "parse_category",
    "preset_for",
]
