from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import yaml

from posecapture.logic.capture_machine import CaptureTiming
from posecapture.logic.reference import ReferencePose


@dataclass
class RuntimeConfig:
    frame: Dict[str, Any]
    mediapipe: Dict[str, Any]
    reference_pose: Dict[str, Any]
    countdown: Dict[str, Any]
    capture: Dict[str, Any]
    audio: Dict[str, Any]
    display: Dict[str, Any]
    logging: Dict[str, Any]

    def build_reference_pose(self) -> ReferencePose:
        return ReferencePose.from_dict(self.reference_pose)

    def build_timing(self) -> CaptureTiming:
        return CaptureTiming.from_dict(self.countdown)


def parse_runtime_config(data: Dict[str, Any] | None) -> RuntimeConfig:
    data = data or {}
    return RuntimeConfig(
        frame=data.get("frame") or {},
        mediapipe=data.get("mediapipe") or {},
        reference_pose=data.get("reference_pose") or {},
        countdown=data.get("countdown") or {},
        capture=data.get("capture") or {},
        audio=data.get("audio") or {},
        display=data.get("display") or {},
        logging=data.get("logging") or {},
    )


def load_runtime_config(path: str) -> RuntimeConfig:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return parse_runtime_config(data)
