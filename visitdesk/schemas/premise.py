from pydantic import BaseModel, EmailStr


class PremiseCreate(BaseModel):
    businessName: str
    category: str | None = None
    phone: str | None = None
    email: EmailStr | None = None
    contactPerson: str | None = None
    county: str | None = None
    address: str | None = None


class PremiseUpdate(BaseModel):
    businessName: str | None = None
    category: str | None = None
    phone: str | None = None
    contactPerson: str | None = None
    county: str | None = None
    address: str | None = None

    def changes(self) -> dict:
        provided = self.model_dump(exclude_unset=True)
        mapping = {
            "businessName": "business_name",
            "category": "category",
            "phone": "phone",
            "contactPerson": "contact_person",
            "county": "county",
            "address": "address",
        }
        return {mapping[key]: value for key, value in provided.items()}
