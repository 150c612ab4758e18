from enum import Enum


class ActorRole(Enum):
    """Who is asking. Supplied by the caller; the core does not authenticate."""

    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"
    DRIVER = "driver"
    SYSTEM = "system"


STAFF_ROLES = {ActorRole.STAFF, ActorRole.ADMIN, ActorRole.SYSTEM}
