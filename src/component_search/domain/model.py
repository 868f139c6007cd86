"""Domain model - component records and the principals that search them.

Records are snapshots read from the document store. The search core never
writes them back; the only mutation it performs is filling the per-principal
``permissions`` mapping in annotate mode.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


COMPONENT_TYPE = "component"


class RequestedAction(str, Enum):
    """Actions a principal may request on a record."""

    READ = "READ"
    WRITE = "WRITE"
    DELETE = "DELETE"
    USERS = "USERS"
    CLEARING = "CLEARING"
    ATTACHMENTS = "ATTACHMENTS"
    WRITE_ECC = "WRITE_ECC"


class ComponentRecord(BaseModel):
    """A component document as stored in CouchDB.

    Field names follow Python conventions; the stored camelCase keys are
    accepted as aliases and used again when dumping ``by_alias=True``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, alias="_id")
    revision: str | None = Field(default=None, alias="_rev")
    type: str = COMPONENT_TYPE

    name: str | None = None
    component_type: str | None = Field(default=None, alias="componentType")
    description: str | None = None
    homepage: str | None = None

    categories: set[str] = Field(default_factory=set)
    languages: set[str] = Field(default_factory=set)
    software_platforms: set[str] = Field(default_factory=set, alias="softwarePlatforms")
    operating_systems: set[str] = Field(default_factory=set, alias="operatingSystems")
    vendor_names: set[str] = Field(default_factory=set, alias="vendorNames")
    main_license_ids: set[str] = Field(default_factory=set, alias="mainLicenseIds")

    created_by: str | None = Field(default=None, alias="createdBy")
    created_on: str | None = Field(default=None, alias="createdOn")
    business_unit: str | None = Field(default=None, alias="businessUnit")

    # Read by external permission policies, never by the search core itself
    component_owner: str | None = Field(default=None, alias="componentOwner")
    moderators: set[str] = Field(default_factory=set)
    visibility: str | None = Field(default=None, alias="visbility")

    permissions: dict[RequestedAction, bool] = Field(default_factory=dict)

    def is_action_permitted(self, action: RequestedAction) -> bool:
        """Return the annotated flag for ``action``; unannotated means not permitted."""
        return self.permissions.get(action, False)


class Principal(BaseModel):
    """Identity on whose behalf a search runs.

    Opaque to the search core: it is handed unchanged to the permission checker.
    """

    model_config = ConfigDict(frozen=True)

    email: str
    department: str | None = None
    user_group: str | None = None
    secondary_departments_and_roles: dict[str, frozenset[str]] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)
