"""
Model output layouts.

SSD-style TFLite exports emit the same four tensors (boxes, classes, scores,
count) but not in a consistent order or naming, and not with a consistent
box axis order. A ModelOutputLayout states explicitly where each role lives
for a given model variant and is validated once, when the model is loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Sequence, Union

from models.config import OutputLayoutConfig
from models.errors import LayoutError


ROLES = ("boxes", "classes", "scores", "count")
REQUIRED_ROLES = ("boxes", "classes", "scores")
BOX_ORDERS = ("yxyx", "xyxy")

RoleRef = Union[int, str]


@dataclass(frozen=True)
class ModelOutputLayout:
    """
    Where each output role lives and how to read it.

    Attributes:
        roles: Role name -> output index (int) or output name (str).
            "count" is optional; without it every slot is considered.
        box_order: Axis order of the emitted boxes ("yxyx" or "xyxy").
        class_remap: Raw class id -> canonical class id. None keeps raw ids.
    """
    roles: Mapping[str, RoleRef]
    box_order: str = "yxyx"
    class_remap: Optional[Mapping[int, int]] = None

    def __post_init__(self):
        if self.box_order not in BOX_ORDERS:
            raise LayoutError(f"box_order must be one of {BOX_ORDERS}, got {self.box_order!r}")
        unknown = set(self.roles) - set(ROLES)
        if unknown:
            raise LayoutError(f"Unknown output roles: {sorted(unknown)}")
        missing = [r for r in REQUIRED_ROLES if r not in self.roles]
        if missing:
            raise LayoutError(f"Output layout is missing roles: {missing}")

    @property
    def is_resolved(self) -> bool:
        return all(isinstance(ref, str) for ref in self.roles.values())

    def name_for(self, role: str) -> Optional[str]:
        ref = self.roles.get(role)
        return ref if isinstance(ref, str) else None

    def resolve(self, output_names: Sequence[str]) -> "ModelOutputLayout":
        """
        Bind index references to concrete output names.

        Args:
            output_names: The model's output names in model order.

        Raises:
            LayoutError: If a role refers to an index or name the model
                does not have, or two roles share an output.
        """
        names = list(output_names)
        resolved: Dict[str, str] = {}
        for role, ref in self.roles.items():
            if isinstance(ref, int):
                if not 0 <= ref < len(names):
                    raise LayoutError(
                        f"Role {role!r} refers to output index {ref}, "
                        f"model has {len(names)} outputs: {names}"
                    )
                resolved[role] = names[ref]
            else:
                if ref not in names:
                    raise LayoutError(f"Role {role!r} refers to unknown output {ref!r}; outputs: {names}")
                resolved[role] = ref

        if len(set(resolved.values())) != len(resolved):
            raise LayoutError(f"Output roles must map to distinct outputs: {resolved}")

        return replace(self, roles=resolved)

    def canonical_class(self, raw_class: int) -> Optional[int]:
        """Map a raw class id to its canonical id, or None if unknown."""
        if self.class_remap is None:
            return raw_class
        return self.class_remap.get(raw_class)


PRESETS: Dict[str, ModelOutputLayout] = {
    # ssd_mobilenetv2_lite_320x320 int8 export: boxes come out as (x, y, x, y).
    "qi8": ModelOutputLayout(
        roles={"boxes": 0, "classes": 1, "scores": 2, "count": 3},
        box_order="xyxy",
        class_remap={0: 0, 1: 1},
    ),
    # float16 export of the same network reorders the outputs.
    "qf16": ModelOutputLayout(
        roles={"count": 0, "classes": 1, "scores": 2, "boxes": 3},
        box_order="yxyx",
        class_remap={0: 0, 1: 1},
    ),
}


def layout_from_config(cfg: OutputLayoutConfig) -> ModelOutputLayout:
    """Build a layout from config: a preset, explicit roles, or both."""
    base: Optional[ModelOutputLayout] = None
    if cfg.preset:
        if cfg.preset not in PRESETS:
            raise LayoutError(f"Unknown output layout preset {cfg.preset!r}; available: {sorted(PRESETS)}")
        base = PRESETS[cfg.preset]

    roles: Dict[str, RoleRef] = dict(base.roles) if base else {}
    roles.update(cfg.roles)

    box_order = cfg.box_order or (base.box_order if base else "yxyx")
    class_remap = cfg.class_remap if cfg.class_remap is not None else (base.class_remap if base else None)

    return ModelOutputLayout(roles=roles, box_order=box_order, class_remap=class_remap)
