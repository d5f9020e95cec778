# designstudio/models/address.py
from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

PLACEHOLDER_STREET = "To be updated from payment gateway"
PLACEHOLDER_FIELD = "To be updated"

class Address(BaseModel):
    """Postal address snapshot stored on orders and users"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "fullName", "full_name"))
    email: Optional[str] = None
    phone: Optional[str] = Field(None, validation_alias=AliasChoices("phone", "phoneNumber", "phone_number", "contact"))
    street: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("street", "streetAddress", "street_address", "line1", "address"),
    )
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("zip_code", "zipCode", "postalCode", "postal_code", "zipcode"),
    )
    country: Optional[str] = None
    gst_number: Optional[str] = Field(None, validation_alias=AliasChoices("gst_number", "gstNumber"))

    @property
    def is_placeholder(self) -> bool:
        return (
            self.street == PLACEHOLDER_STREET
            or self.city == PLACEHOLDER_FIELD
            or self.state == PLACEHOLDER_FIELD
        )

    def one_line(self) -> str:
        parts = [self.street or "", self.city or "", f"{self.state or ''} {self.zip_code or ''}".strip()]
        return ", ".join(parts)
