from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StartSessionRequest(BaseModel):
    camera_index: int = Field(default=-1, ge=-1)
    camera_source: Optional[str] = Field(default=None, max_length=512)
    camera_type: str = Field(default="front", pattern="^(front|back)$")
    stream_frames: bool = True
    enable_voice: bool = True


class ResetSessionRequest(BaseModel):
    stage: str = Field(default="front", pattern="^(front|side)$")


class CameraSwitchRequest(BaseModel):
    camera_type: str = Field(pattern="^(front|back)$")


class SessionStartResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    camera_type: str


class SessionStopResponse(BaseModel):
    status: str


class MessageResponse(BaseModel):
    message: str


class SessionStatusResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    running: bool
    message: str
    lastStatus: Optional[str] = None
    cameraType: Optional[str] = None
    stage: Optional[str] = None
    phase: Optional[str] = None
    countdown: Optional[int] = None
    isCountingDown: Optional[bool] = None
    fps: Optional[float] = None


class GuidancePayload(BaseModel):
    type: str = "guidance"
    stage: str
    isValid: bool
    feedbackMessage: str
    guidanceByJoint: Dict[str, str]


class StatusPayload(BaseModel):
    type: str = "status"
    status: str
    message: str


class BothCapturedPayload(BaseModel):
    type: str = "both_captured"
    imageUri: str
    sideImageUri: str
