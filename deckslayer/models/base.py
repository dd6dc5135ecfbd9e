import datetime as dt
from typing import Annotated, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, BeforeValidator, field_serializer

# Standardizes MongoDB ObjectIds to strings
PyObjectId = Annotated[str, BeforeValidator(str)]


def _round_number(value: Any) -> Any:
    # Models occasionally answer 72.5 where an integer score is expected
    if isinstance(value, float):
        return round(value)
    return value


# Bounded 0-100 integer used by every score in generated reports
Score = Annotated[int, BeforeValidator(_round_number), Field(ge=0, le=100)]


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra='forbid'
    )

    id: Optional[PyObjectId] = Field(None, alias="_id")
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))

    @field_serializer("created_at", "updated_at", when_used="json")
    def serialize_dt(self, value: dt.datetime):
        return value.isoformat()
