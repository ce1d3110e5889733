"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- UserSkill -> "userskill" collection
- MentorApplication -> "mentorapplication" collection

Fields are snake_case in Python and stored/serialized camelCase
(``is_active`` -> ``isActive``), matching the JSON the front end sends.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UserRole = Literal["user", "mentor", "admin"]
SkillLevel = Literal["none", "beginner", "intermediate", "advanced", "expert"]
SkillSource = Literal["self", "resume", "course", "project", "validated"]
ValidationStatus = Literal["none", "pending", "validated", "rejected"]
SkillDomain = Literal[
    "technical", "soft-skills", "tools", "frameworks", "languages", "databases", "cloud", "other"
]
Importance = Literal["required", "optional"]
ListingStatus = Literal["draft", "active"]
MentorApplicationStatus = Literal["draft", "submitted", "approved", "rejected"]
TicketStatus = Literal["open", "in_progress", "waiting_user", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high"]
TicketCategory = Literal["bug", "feature", "account", "payment", "other"]
NotificationType = Literal[
    "readiness_outdated",
    "mentor_validation",
    "roadmap_updated",
    "role_changed",
    "mentor_application",
    "ticket_update",
]


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users
class EmailPreferences(Document):
    roadmap_updates: bool = True
    mentor_messages: bool = True
    system_announcements: bool = True
    weekly_reports: bool = True


class Profile(Document):
    bio: Optional[str] = Field(None, max_length=1000)
    headline: Optional[str] = Field(None, max_length=200)
    education: List[Dict[str, Any]] = Field(default_factory=list)
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    target_role_id: Optional[str] = None


class User(Document):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    role: UserRole = Field("user", description="Role-based access control role")
    is_active: bool = Field(True, description="Whether user is active")
    mentor_id: Optional[str] = Field(None, description="Assigned mentor id")
    profile: Profile = Field(default_factory=Profile)
    email_preferences: EmailPreferences = Field(default_factory=EmailPreferences)


# Skills
class Skill(Document):
    name: str = Field(..., max_length=100)
    normalized_name: Optional[str] = None
    domain: SkillDomain = "other"
    category: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True


class UserSkill(Document):
    """A user's claim on a skill; one per (userId, skillId)."""
    user_id: str
    skill_id: str
    level: SkillLevel = "beginner"
    source: SkillSource = "self"
    validation_status: ValidationStatus = "none"
    validated_by: Optional[str] = None
    validated_at: Optional[datetime] = None
    validation_note: Optional[str] = Field(None, max_length=500)


# Target roles
class Benchmark(Document):
    skill_id: str
    skill_name: str
    importance: Importance = "required"
    weight: int = Field(..., ge=1, le=100)
    required_level: SkillLevel = "intermediate"
    is_active: bool = True


class Role(Document):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True
    benchmarks: List[Benchmark] = Field(default_factory=list)


# Listings
class Job(Document):
    title: str
    company: str
    category: Optional[str] = None
    city: str
    type: str = Field("Full-time", description="Full-time, Part-time, Remote, Contract...")
    salary: Optional[str] = None
    experience: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    contact_email: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    status: ListingStatus = "active"
    created_by: Optional[str] = None


class Internship(Document):
    title: str
    company: str
    category: Optional[str] = None
    city: str
    type: str = Field("Remote", description="Remote, On-site, Hybrid")
    stipend: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    status: ListingStatus = "active"
    created_by: Optional[str] = None


# Mentor applications
class ProfessionalIdentity(Document):
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    company_email: Optional[str] = None


class ApplicationExperience(Document):
    current_title: Optional[str] = None
    years_of_experience: Optional[int] = Field(None, ge=0, le=60)
    companies: List[str] = Field(default_factory=list)
    domains: List[str] = Field(default_factory=list)


class Expertise(Document):
    primary_skills: List[str] = Field(default_factory=list)
    mentoring_areas: List[str] = Field(default_factory=list)


class WorkProof(Document):
    project_links: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)


class Intent(Document):
    motivation: str = ""


class Availability(Document):
    hours_per_week: Optional[int] = Field(None, ge=0, le=80)
    preferred_mentee_level: Literal["beginner", "intermediate", "advanced"] = "beginner"


class MentorApplicationDraft(Document):
    """The user-editable sections of a mentor application."""
    professional_identity: ProfessionalIdentity = Field(default_factory=ProfessionalIdentity)
    experience: ApplicationExperience = Field(default_factory=ApplicationExperience)
    expertise: Expertise = Field(default_factory=Expertise)
    work_proof: WorkProof = Field(default_factory=WorkProof)
    intent: Intent = Field(default_factory=Intent)
    availability: Availability = Field(default_factory=Availability)


class MentorApplication(MentorApplicationDraft):
    user_id: str
    status: MentorApplicationStatus = "draft"
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    consent_accepted: bool = False
    consent_accepted_at: Optional[datetime] = None
    consent_version: Optional[str] = None


# Support tickets
class Ticket(Document):
    ticket_number: str
    created_by: str
    role: Literal["user", "mentor"]
    subject: str = Field(..., max_length=200)
    category: TicketCategory = "other"
    priority: TicketPriority = "medium"
    status: TicketStatus = "open"
    assigned_to: Optional[str] = None
    last_message_at: Optional[datetime] = None


class TicketMessage(Document):
    ticket_id: str
    sender_id: str
    sender_role: UserRole
    message: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


# Notifications and email
class Notification(Document):
    user_id: str = Field(..., description="Recipient user id")
    type: NotificationType
    title: str = Field(..., max_length=255)
    message: str = Field(..., max_length=1000)
    action_url: Optional[str] = Field(None, max_length=500)
    is_read: bool = Field(False, description="Read status")
    metadata: Optional[Dict[str, Any]] = None


class UserEmailEvent(Document):
    """Marks a lifecycle email as sent; unique per (userId, event)."""
    user_id: str
    event: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sent_at: datetime


class EmailOutbox(Document):
    """Rendered email waiting for the external mail sender."""
    to: str
    subject: str
    html: str
    event: str
    user_id: Optional[str] = None
    status: Literal["queued", "sent", "failed"] = "queued"


class ActivityLog(Document):
    user_id: str
    action: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ReadinessSnapshot(Document):
    user_id: str
    role_id: str
    percentage: float
    has_all_required: bool
