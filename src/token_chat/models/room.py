"""
Room policies — a closed set of tagged variants.

``OpenRoom`` admits everyone; ``GatedRoom`` requires a minimum balance of a
token. The flat shape used by the chat contract and room files
(``isTokenGated``, ``requiredToken``, ``minTokenAmount``) is accepted by
``parse_room_policy``.
"""

from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from token_chat.models.address import Address


class TokenRef(BaseModel):
    address: Address
    decimals: int = Field(default=18, ge=0, le=77)
    symbol: str = ""
    standard: Literal["erc20", "erc721"] = "erc20"

    model_config = {"frozen": True}

    @property
    def scale(self) -> int:
        """Decimal places used to turn raw base units into token amounts."""
        return 0 if self.standard == "erc721" else self.decimals


class _RoomBase(BaseModel):
    room_id: str = Field(min_length=1)
    name: str
    description: str = ""
    is_private: bool = False
    member_count: int = 0

    model_config = {"frozen": True, "populate_by_name": True}


class OpenRoom(_RoomBase):
    kind: Literal["open"] = "open"

    @property
    def is_token_gated(self) -> bool:
        return False


class GatedRoom(_RoomBase):
    kind: Literal["token_gated"] = "token_gated"
    required_token: TokenRef
    min_token_amount: Decimal = Field(ge=0)

    @property
    def is_token_gated(self) -> bool:
        return True

    @field_validator("min_token_amount", mode="before")
    @classmethod
    def _amount_from_text(cls, value: Any) -> Any:
        if isinstance(value, float):
            return Decimal(str(value))
        return value


RoomPolicy = Annotated[Union[OpenRoom, GatedRoom], Field(discriminator="kind")]

_policy_adapter: TypeAdapter[Union[OpenRoom, GatedRoom]] = TypeAdapter(RoomPolicy)

# camelCase keys from the contract's getRoom tuple / room files
_FLAT_KEYS = {
    "id": "room_id",
    "roomId": "room_id",
    "isTokenGated": "is_token_gated",
    "requiredToken": "required_token",
    "minTokenAmount": "min_token_amount",
    "memberCount": "member_count",
    "isPrivate": "is_private",
}


def parse_room_policy(data: Union[dict[str, Any], OpenRoom, GatedRoom]) -> Union[OpenRoom, GatedRoom]:
    """Build a RoomPolicy from the tagged or the flat representation."""
    if isinstance(data, (OpenRoom, GatedRoom)):
        return data
    if not isinstance(data, dict):
        raise ValueError(f"Room must be an object, got {type(data).__name__}")
    raw = {_FLAT_KEYS.get(k, k): v for k, v in data.items()}
    if "kind" not in raw:
        gated = bool(raw.pop("is_token_gated", False))
        raw["kind"] = "token_gated" if gated else "open"
    else:
        raw.pop("is_token_gated", None)
    if raw["kind"] == "open":
        # token fields on an ungated room carry no meaning
        raw.pop("required_token", None)
        raw.pop("min_token_amount", None)
    elif isinstance(raw.get("required_token"), str):
        raw["required_token"] = {"address": raw["required_token"]}
    return _policy_adapter.validate_python(raw)
