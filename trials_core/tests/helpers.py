# trials_core/tests/helpers.py
"""Shared test data for the seeded foundry stages."""

from typing import Any, Dict


STAGE_CODES = ["SAND", "MOULDING", "MELTING", "FETTLING", "QUALITY", "MACHINE_SHOP", "METALLURGY"]

STAGE_SECTIONS = {
    "SAND": "sand_properties",
    "MOULDING": "mould_correction",
    "MELTING": "pouring_details",
    "FETTLING": "visual_inspection",
    "QUALITY": "dimensional_inspection",
    "MACHINE_SHOP": "machine_shop",
    "METALLURGY": "metallurgical_inspection",
}

SECTION_SAMPLES: Dict[str, Dict[str, Any]] = {
    "sand_properties": {"date": "2025-03-01", "t_clay": "10.500", "moi": "3.200", "permeability": "140"},
    "mould_correction": {"date": "2025-03-01", "mould_thickness": "12.0", "mould_hardness": "85"},
    "pouring_details": {
        "pour_date": "2025-03-02",
        "heat_code": "H-221",
        "composition": {"C": 3.6, "Si": 2.4},
        "pouring_temp_c": "1420",
        "no_of_mould_poured": 12,
    },
    "visual_inspection": {
        "inspection_date": "2025-03-03",
        "visual_ok": True,
        "inspections": {"columns": ["Cavity 1", "Cavity 2"], "rows": [["OK", "OK"]]},
    },
    "dimensional_inspection": {
        "inspection_date": "2025-03-04",
        "casting_weight": "4.250",
        "no_of_cavities": 2,
        "inspections": {"columns": ["Cavity 1", "Cavity 2"], "rows": [["10.1", "10.2"]]},
    },
    "machine_shop": {
        "inspection_date": "2025-03-05",
        "inspections": {"columns": ["Bore"], "rows": [["OK"], ["OK"]]},
    },
    "metallurgical_inspection": {
        "inspection_date": "2025-03-06",
        "mechanical_properties": [{"tensile": 450, "yield": 310}],
        "hardness": [{"surface": 180, "core": 175}],
    },
}
