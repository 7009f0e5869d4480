from pydantic import BaseModel, Field


class FormFieldDefinition(BaseModel):
    label: str
    type: str = "text"
    required: bool = False


class FormCreate(BaseModel):
    name: str
    definition: list[FormFieldDefinition] = Field(default_factory=list)


class FormUpdate(BaseModel):
    name: str | None = None
    definition: list[FormFieldDefinition] | None = None


class FormStatusUpdate(BaseModel):
    isActive: bool
