from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict

from lifecycle import Role, ProductStatus

class RegisterUser(BaseModel):
    name: str
    role: Optional[Role] = None
    location: str

class RegisterProduct(BaseModel):
    name: str
    variety: str = ""
    farm_location: str
    is_organic: bool = False
    batch_size: int
    certifications: str = ""

class UpdateStatus(BaseModel):
    new_status: ProductStatus
    location: str
    action: str
    additional_info: str = ""

class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    identity: str
    name: str
    role: Role
    location: str
    verified: bool
    authorized: bool
    registered_at: int

class HistoryEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    seq: int
    actor: str
    role: Role
    timestamp: int
    location: str
    action: str
    additional_info: str
    status: ProductStatus
    prev_hash: str
    hash: str

class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    variety: str
    farm_location: str
    farmer: str
    is_organic: bool
    batch_size: int
    certifications: str
    status: ProductStatus
    planted_date: int
    harvested_date: int

class ProductHistory(BaseModel):
    product: ProductOut
    history: List[HistoryEventOut]

class ProductCreated(BaseModel):
    product_id: int

class ProductIds(BaseModel):
    items: List[int]
    total: int

class OrganicCheck(BaseModel):
    product_id: int
    is_organic: bool

class ChainCheck(BaseModel):
    product_id: int
    verified: bool
    events: int

class UserList(BaseModel):
    items: List[str]
    total: int

class RoleCounts(BaseModel):
    counts: Dict[str, int] = Field(default_factory=dict)
