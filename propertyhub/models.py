from enum import Enum


# Closed value sets for listing classification fields.
# Validated once at the request schema boundary; the query core trusts them.
class PropertyType(str, Enum):
    apartment = "Apartment"
    villa = "Villa"
    bungalow = "Bungalow"
    studio = "Studio"
    penthouse = "Penthouse"


class FurnishedState(str, Enum):
    furnished = "Furnished"
    semi = "Semi"
    unfurnished = "Unfurnished"


class ListedBy(str, Enum):
    owner = "Owner"
    agent = "Agent"
    builder = "Builder"


class ListingType(str, Enum):
    rent = "rent"
    sale = "sale"


class UserRole(str, Enum):
    user = "user"
    agent = "agent"
    admin = "admin"
