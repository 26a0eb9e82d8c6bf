from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scenesync.collab.models import TransformState

# Older clients name these userId and modelState.
OWNER_ID = AliasChoices("ownerId", "userId")
TRANSFORM_STATE = AliasChoices("transformState", "modelState")


class _ProjectFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    owner_id: Optional[str] = Field(
        None, validation_alias=OWNER_ID, serialization_alias="ownerId", max_length=128
    )
    status: Optional[str] = Field(None, max_length=32)
    transform_state: Optional[TransformState] = Field(
        None, validation_alias=TRANSFORM_STATE, serialization_alias="transformState"
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


class ProjectCreate(_ProjectFields):
    name: str = Field(..., min_length=1, max_length=200)


class ProjectUpdate(_ProjectFields):
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class SceneUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    transform_state: Optional[TransformState] = Field(
        None, validation_alias=TRANSFORM_STATE
    )
    annotations: Optional[List[Dict[str, Any]]] = None
