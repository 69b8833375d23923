from pydantic import BaseModel, ConfigDict, Field

# Single managed device: every persisted record carries the same identity key.
STATE_ID = 1
STATE_ID_FIELD = "state_id"
TIMESTAMP_FIELD = "timestamps"


class DeviceStateOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    led_state: bool = Field(alias="ledState")
    manual_mode: bool = Field(alias="manualMode")


class HealthOut(BaseModel):
    status: str = "ok"
