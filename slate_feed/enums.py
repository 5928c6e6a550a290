from enum import Enum


class Category(str, Enum):
    SALE = "sale"
    EVENT = "event"
    SERVICE = "service"
    JOB = "job"

    def __str__(self):
        return self.value


# Sentinel accepted wherever a category filter is expected.
ALL_CATEGORIES = "all"

CATEGORY_LABELS = {
    ALL_CATEGORIES: "All",
    Category.SALE.value: "For Sale",
    Category.EVENT.value: "Events",
    Category.SERVICE.value: "Services",
    Category.JOB.value: "Jobs",
}


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"


class RsvpStatus(str, Enum):
    ATTENDING = "attending"
    MAYBE = "maybe"
    NOT_ATTENDING = "not-attending"


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    INTERVIEW = "interview"
    REJECTED = "rejected"
    HIRED = "hired"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class FirestoreOperators(str, Enum):
    LT = "<"
    LTE = "<="
    EQ = "=="
    NE = "!="
    GT = ">"
    GTE = ">="
    IN = "in"
    NOT_IN = "not-in"
    ARRAY_CONTAINS = "array-contains"
    ARRAY_CONTAINS_ANY = "array-contains-any"


class OrderByDirection(str, Enum):
    DESCENDING = "DESCENDING"
    ASCENDING = "ASCENDING"

    def __str__(self):
        return self.value
