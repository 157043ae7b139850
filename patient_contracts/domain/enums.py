"""Bounded enumerations for the patient data contract.

Every enum is a ``str`` subclass so that normalized records serialize to the
plain JSON values collaborators expect (``"mobile"``, ``"hipaa"``, ...).
"""

from enum import Enum


class Gender(str, Enum):
    """Administrative gender (ISO 5218, extended)."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"
    SEPARATED = "separated"
    DOMESTIC_PARTNER = "domestic_partner"
    OTHER = "other"


class Ethnicity(str, Enum):
    """Ethnicity (US Census categories)."""
    HISPANIC_LATINO = "hispanic_latino"
    NOT_HISPANIC_LATINO = "not_hispanic_latino"
    AMERICAN_INDIAN_ALASKA_NATIVE = "american_indian_alaska_native"
    ASIAN = "asian"
    BLACK_AFRICAN_AMERICAN = "black_african_american"
    NATIVE_HAWAIIAN_PACIFIC_ISLANDER = "native_hawaiian_pacific_islander"
    WHITE = "white"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class PhoneType(str, Enum):
    MOBILE = "mobile"
    HOME = "home"
    WORK = "work"
    FAX = "fax"
    OTHER = "other"


class EmailType(str, Enum):
    PERSONAL = "personal"
    WORK = "work"
    OTHER = "other"


class AddressType(str, Enum):
    HOME = "home"
    WORK = "work"
    BILLING = "billing"
    SHIPPING = "shipping"
    OTHER = "other"


class ContactMethod(str, Enum):
    """Preferred way of reaching the patient for ad-hoc contact."""
    EMAIL = "email"
    PHONE = "phone"
    SMS = "sms"
    MAIL = "mail"
    PORTAL = "portal"


class CommunicationChannel(str, Enum):
    """Channels a communication sender can deliver on."""
    EMAIL = "email"
    SMS = "sms"
    PHONE = "phone"
    PORTAL = "portal"
    MAIL = "mail"


class MedicalSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    LIFE_THREATENING = "life_threatening"


class ConditionStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CHRONIC = "chronic"


class AlertType(str, Enum):
    ALLERGY = "allergy"
    MEDICAL = "medical"
    BEHAVIORAL = "behavioral"
    ADMINISTRATIVE = "administrative"


class CoverageType(str, Enum):
    """Insurance coverage slot, in tier order."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


class RelationshipToSubscriber(str, Enum):
    SELF = "self"
    SPOUSE = "spouse"
    CHILD = "child"
    PARENT = "parent"
    OTHER = "other"


class ConsentType(str, Enum):
    TREATMENT = "treatment"
    PRIVACY_NOTICE = "privacy_notice"
    HIPAA = "hipaa"
    FINANCIAL_POLICY = "financial_policy"
    PHOTOGRAPHY = "photography"
    COMMUNICATION = "communication"
    RESEARCH = "research"
    MINORS = "minors"


class SignatureType(str, Enum):
    DIGITAL = "digital"
    PAPER = "paper"
    VERBAL = "verbal"


class PatientStatus(str, Enum):
    """Lifecycle status of a patient record."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"
    DECEASED = "deceased"
    MERGED = "merged"


class SortField(str, Enum):
    PATIENT_NUMBER = "patientNumber"
    LAST_NAME = "lastName"
    FIRST_NAME = "firstName"
    DATE_OF_BIRTH = "dateOfBirth"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    LAST_VISIT = "lastVisit"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    PDF = "pdf"
    HL7 = "hl7"
    FHIR = "fhir"


class ExportFieldCategory(str, Enum):
    DEMOGRAPHICS = "demographics"
    CONTACTS = "contacts"
    INSURANCE = "insurance"
    MEDICAL = "medical"
    APPOINTMENTS = "appointments"
    TREATMENTS = "treatments"
    DOCUMENTS = "documents"
    CONSENTS = "consents"
    NOTES = "notes"


class RetainableField(str, Enum):
    """Fields an anonymization request may ask to keep."""
    DATE_OF_BIRTH = "dateOfBirth"
    GENDER = "gender"
    APPOINTMENT_HISTORY = "appointmentHistory"
    TREATMENT_HISTORY = "treatmentHistory"
    BILLING_HISTORY = "billingHistory"


class ImportSource(str, Enum):
    CSV = "csv"
    EXCEL = "excel"
    HL7 = "hl7"
    FHIR = "fhir"
    LEGACY_SYSTEM = "legacy_system"


class CommunicationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RelationshipType(str, Enum):
    SPOUSE = "spouse"
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    GUARDIAN = "guardian"
    GRANDPARENT = "grandparent"
    GRANDCHILD = "grandchild"
    PARTNER = "partner"
    OTHER = "other"
